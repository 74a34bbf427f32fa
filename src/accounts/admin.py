from django.contrib import admin
from django.contrib.auth.admin import UserAdmin

from accounts.models import User


@admin.register(User)
class BoxofficeUserAdmin(UserAdmin):  # type: ignore[type-arg]
    list_display = ["username", "email", "name", "role", "is_active", "date_joined"]
    list_filter = ["role", "is_active", "is_superuser"]
    search_fields = ["username", "email", "name"]
    fieldsets = (
        *UserAdmin.fieldsets,  # type: ignore[misc]
        ("Boxoffice", {"fields": ("name", "role", "language")}),
    )
