"""This module contains the controllers for the accounts app."""

from ninja_extra import api_controller, route, status

from accounts import schema
from accounts.models import User
from accounts.service import account as account_service
from common.authentication import I18nJWTAuth
from common.controllers import UserAwareController
from common.throttling import AuthThrottle, UserRegistrationThrottle


@api_controller("/accounts", tags=["Account"], throttle=AuthThrottle())
class AccountController(UserAwareController):
    @route.post(
        "/register",
        response={201: schema.UserSchema},
        url_name="register-account",
        throttle=UserRegistrationThrottle(),
    )
    def register(self, payload: schema.RegisterUserSchema) -> tuple[int, User]:
        """Create a new buyer account with email and password.

        Log in afterwards with POST /token/pair using the email as username.
        Returns 400 if an account with the same email already exists.
        """
        return status.HTTP_201_CREATED, account_service.register_user(payload)

    @route.get("/me", response=schema.UserSchema, url_name="me", auth=I18nJWTAuth())
    def me(self) -> User:
        """Retrieve the authenticated user's profile, including the platform role."""
        return self.user()

    @route.put("/me", response=schema.UserSchema, url_name="update-profile", auth=I18nJWTAuth())
    def update_profile(self, payload: schema.ProfileUpdateSchema) -> User:
        """Update the authenticated user's display name and language."""
        user = self.user()
        for key, value in payload.model_dump(exclude_unset=True).items():
            setattr(user, key, value)
        user.save(update_fields=list(payload.model_dump(exclude_unset=True)))
        return user
