import re
import uuid

from django.conf import settings
from django.contrib.auth.models import AbstractUser, UserManager
from django.db import models


class UserQuerySet(models.QuerySet["User"]):
    """Queryset for User."""

    def owners(self) -> "UserQuerySet":
        """Users allowed to organise events."""
        return self.filter(role__in=[User.Role.OWNER, User.Role.ADMIN])


class BoxofficeUserManager(UserManager["User"]):
    def get_queryset(self) -> UserQuerySet:
        """Get queryset for User."""
        return UserQuerySet(self.model, using=self._db)


class User(AbstractUser):
    class Role(models.TextChoices):
        USER = "user", "User"
        OWNER = "owner", "Owner"
        ADMIN = "admin", "Admin"

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    name = models.CharField(max_length=255, blank=True, help_text="Display name")
    role = models.CharField(max_length=10, choices=Role.choices, default=Role.USER, db_index=True)
    language = models.CharField(
        max_length=7,
        choices=settings.LANGUAGES,
        default=settings.LANGUAGE_CODE,
        help_text="User's preferred language",
    )

    objects = BoxofficeUserManager()  # type: ignore[misc]

    class Meta:
        ordering = ["username"]

    @property
    def is_admin(self) -> bool:
        """Platform admins approve events and release tickets. Superusers always qualify."""
        return self.is_superuser or self.role == self.Role.ADMIN

    @property
    def is_owner(self) -> bool:
        """Owners organise events. Admins can act as owners of any event."""
        return self.role == self.Role.OWNER or self.is_admin

    @property
    def display_name(self) -> str:
        """Display name."""
        return self.name or self.get_full_name() or re.sub(r"(\W|_)+", " ", self.username.split("@")[0]).title()
