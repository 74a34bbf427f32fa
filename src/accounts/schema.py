"""Schema for accounts module."""

import typing as t

from django.contrib.auth.password_validation import validate_password
from django.core.exceptions import ValidationError
from ninja import ModelSchema, Schema
from pydantic import UUID4, EmailStr, Field, model_validator

from common.schema import StrippedString

from .models import User


class UserSchema(ModelSchema):
    id: UUID4
    email: str
    role: str
    language: str
    display_name: str

    class Meta:
        model = User
        fields = ["email", "name", "role", "language", "is_active"]


class MinimalUserSchema(Schema):
    id: UUID4
    email: str
    display_name: str


class PasswordMixin(Schema):
    password1: str = Field(..., description="Password", min_length=8, max_length=150)
    password2: str = Field(..., description="Password confirmation", min_length=8, max_length=150)

    @model_validator(mode="after")
    def password_match(self) -> t.Self:
        """Validate that the passwords match."""
        if self.password1 != self.password2:
            raise ValueError("Passwords do not match")
        return self


class RegisterUserSchema(PasswordMixin):
    email: EmailStr
    name: StrippedString = ""

    @model_validator(mode="after")
    def validate_password(self) -> t.Self:
        """Run Django's password validators against the candidate user."""
        tmp_user = User(email=self.email, username=self.email, name=self.name)
        try:
            validate_password(self.password1, user=tmp_user)
        except ValidationError as e:
            raise ValueError(e.messages[0]) from e
        return self


class ProfileUpdateSchema(Schema):
    name: StrippedString
    language: t.Literal["en", "pt"] = "en"


class RoleUpdateSchema(Schema):
    role: User.Role
