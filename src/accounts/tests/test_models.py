import pytest

from accounts.models import User
from accounts.service.account import set_role

pytestmark = pytest.mark.django_db


def test_roles(user: User, owner: User, admin_user: User) -> None:
    assert (user.is_owner, user.is_admin) == (False, False)
    assert (owner.is_owner, owner.is_admin) == (True, False)
    assert (admin_user.is_owner, admin_user.is_admin) == (True, True)


def test_superuser_is_admin() -> None:
    superuser = User.objects.create_superuser(username="root@example.com", email="root@example.com", password="x")

    assert superuser.is_admin is True


def test_owners_queryset(user: User, owner: User, admin_user: User) -> None:
    assert set(User.objects.owners()) == {owner, admin_user}


def test_display_name_falls_back_to_email() -> None:
    user = User.objects.create_user(username="maria_joao@example.com", email="maria_joao@example.com", password="x")

    assert user.display_name == "Maria Joao"


def test_set_role(user: User) -> None:
    set_role(user, User.Role.OWNER)

    user.refresh_from_db()
    assert user.role == User.Role.OWNER
