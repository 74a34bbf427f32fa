"""Project-wide fixtures: users, JWT clients, an event on sale with tables and buses."""

import secrets
import string
import typing as t
from datetime import datetime, timedelta
from decimal import Decimal

import faker
import pytest
from django.core.cache import cache
from django.test.client import Client
from django.utils import timezone
from ninja_jwt.tokens import RefreshToken

from accounts.models import User
from events.models import Bus, Event, Table


@pytest.fixture(autouse=True)
def clear_throttle_cache() -> None:
    """Throttle counters live in the cache; start every test with a clean slate."""
    cache.clear()


@pytest.fixture(autouse=True)
def enable_celery_eager_mode(settings: t.Any) -> None:
    """Enable Celery eager mode for tests so tasks execute synchronously.

    This ensures that Celery tasks run immediately in the same process,
    allowing tests to verify their side effects without async complications.
    """
    settings.CELERY_TASK_ALWAYS_EAGER = True
    settings.CELERY_TASK_EAGER_PROPAGATES = True


@pytest.fixture(autouse=True)
def in_memory_storage(settings: t.Any) -> None:
    """Keep uploads off the disk."""
    settings.STORAGES = {
        **settings.STORAGES,
        "default": {"BACKEND": "django.core.files.storage.InMemoryStorage"},
    }


class UserFactory:
    """Factory for creating User instances for testing."""

    fake = faker.Faker()

    def create_user(self, **kwargs: t.Any) -> User:
        username = kwargs.pop(
            "username", "".join(secrets.choice(string.ascii_lowercase) for _ in range(8)) + "@user.test"
        )
        email = kwargs.pop("email", username)
        password = kwargs.pop("password", "password")
        name = kwargs.pop("name", self.fake.name())
        return User.objects.create_user(username=username, email=email, password=password, name=name, **kwargs)

    def __call__(self, **kwargs: t.Any) -> User:
        return self.create_user(**kwargs)


@pytest.fixture
def user_factory() -> UserFactory:
    return UserFactory()


@pytest.fixture
def user(user_factory: UserFactory) -> User:
    """A buyer."""
    return user_factory(username="buyer@example.com")


@pytest.fixture
def other_user(user_factory: UserFactory) -> User:
    return user_factory(username="other@example.com")


@pytest.fixture
def owner(user_factory: UserFactory) -> User:
    """An event owner."""
    return user_factory(username="owner@example.com", role=User.Role.OWNER)


@pytest.fixture
def admin_user(user_factory: UserFactory) -> User:
    """A platform admin."""
    return user_factory(username="admin@example.com", role=User.Role.ADMIN)


def auth_client(user: User) -> Client:
    refresh = RefreshToken.for_user(user)
    return Client(HTTP_AUTHORIZATION=f"Bearer {refresh.access_token}")  # type: ignore[attr-defined]


@pytest.fixture
def user_client(user: User) -> Client:
    return auth_client(user)


@pytest.fixture
def other_user_client(other_user: User) -> Client:
    return auth_client(other_user)


@pytest.fixture
def owner_client(owner: User) -> Client:
    return auth_client(owner)


@pytest.fixture
def admin_client_jwt(admin_user: User) -> Client:
    return auth_client(admin_user)


@pytest.fixture
def next_week() -> datetime:
    return (timezone.now() + timedelta(days=7)).replace(hour=22, minute=0, second=0, microsecond=0)


@pytest.fixture
def event(owner: User, next_week: datetime) -> Event:
    """An approved event with 100 tickets, on sale."""
    return Event.objects.create(
        owner=owner,
        name="Gala Dinner",
        location="Lisbon",
        start=next_week,
        status=Event.Status.APPROVED,
        tickets_number=100,
        price_bus=Decimal("45.00"),
        price_no_bus=Decimal("35.00"),
        payment_iban="PT50000201231234567890154",
        payment_name="Gala Committee",
    )


@pytest.fixture
def table(event: Event) -> Table:
    return Table.objects.create(event=event, name="Table 1", capacity=10)


@pytest.fixture
def bus_outbound(event: Event, next_week: datetime) -> Bus:
    return Bus.objects.create(
        event=event,
        direction=Bus.Direction.OUTBOUND,
        location="Porto",
        departs_at=next_week - timedelta(hours=4),
        capacity=50,
    )


@pytest.fixture
def bus_return(event: Event, next_week: datetime) -> Bus:
    return Bus.objects.create(
        event=event,
        direction=Bus.Direction.RETURN,
        location="Lisbon",
        departs_at=next_week + timedelta(hours=6),
        capacity=50,
    )
