import logging
import typing as t

import structlog
from django.conf import settings
from django.contrib.auth.models import AnonymousUser
from django.http import HttpRequest
from django.utils import translation
from ninja_jwt.authentication import JWTAuth

logger = logging.getLogger(__name__)


class I18nJWTAuth(JWTAuth):
    """JWT authentication that activates the user's preferred language.

    The language is activated right after the token is validated, so error messages
    and ticket emails rendered during the request use it.
    """

    def authenticate(self, request: HttpRequest, token: str) -> t.Any:
        """Authenticate the request and activate the user's language preference."""
        user = super().authenticate(request, token)
        structlog.contextvars.bind_contextvars(user_id=str(user.pk))

        user_language = getattr(user, "language", None)
        if user_language:
            translation.activate(user_language)
            request.LANGUAGE_CODE = user_language

        return user


class OptionalAuth(I18nJWTAuth):
    """Optional JWT authentication.

    - If a JWT token is present: authenticates the user.
    - If not: sets request.user to AnonymousUser and continues.

    Used by the public catalogue, where owners and admins can also see events that are not approved yet.
    """

    def __call__(self, request: HttpRequest) -> t.Any | None:
        """Overrides I18nJWTAuth __call__ to provide optional auth."""
        auth_value = request.headers.get(self.header)
        if not auth_value:
            request.user = AnonymousUser()
            return request.user
        parts = auth_value.split(" ")

        if parts[0].lower() != self.openapi_scheme:
            if settings.DEBUG:
                logger.error(f"Unexpected auth - '{auth_value}'")
            return None
        token = " ".join(parts[1:])
        return self.authenticate(request, token)
