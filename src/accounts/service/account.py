"""Service layer for the accounts app."""

import structlog
from django.db import transaction
from django.db.models import QuerySet
from django.utils.translation import gettext_lazy as _
from ninja.errors import HttpError

from accounts import schema
from accounts.models import User

logger = structlog.get_logger(__name__)


@transaction.atomic
def register_user(payload: schema.RegisterUserSchema) -> User:
    """Register a new buyer account.

    Args:
        payload (schema.RegisterUserSchema): The user data.

    Returns:
        User: The newly created user.
    """
    logger.info("user_registration_started", email=payload.email)
    if User.objects.filter(username__iexact=payload.email).exists():
        logger.warning("user_registration_duplicate", email=payload.email)
        raise HttpError(400, str(_("A user with this email already exists.")))
    new_user = User.objects.create_user(
        username=payload.email.lower(),
        email=payload.email.lower(),
        password=payload.password1,
        name=payload.name,
    )
    logger.info("user_registration_completed", user_id=str(new_user.id))
    return new_user


def users_for_admin() -> QuerySet[User]:
    """Every account, newest first."""
    return User.objects.order_by("-date_joined")


def set_role(user: User, role: User.Role, changed_by: User | None = None) -> User:
    """Change the platform role of a user.

    An admin cannot change their own role.
    """
    if changed_by is not None and changed_by.pk == user.pk:
        raise HttpError(400, str(_("You cannot change your own role.")))
    previous = user.role
    user.role = role
    user.save(update_fields=["role"])
    logger.info(
        "user_role_changed",
        user_id=str(user.id),
        previous_role=previous,
        role=role,
        changed_by=str(changed_by.id) if changed_by else None,
    )
    return user
