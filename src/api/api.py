from django.conf import settings
from django.core.exceptions import ValidationError
from django.http import HttpRequest
from ninja_extra import NinjaExtraAPI
from ninja_jwt.controller import NinjaJWTDefaultController

from accounts.controllers.account import AccountController
from common.schema import ResponseOk, VersionResponse
from common.throttling import AnonDefaultThrottle, UserDefaultThrottle
from events.controllers.event_admin import EventAdminController
from events.controllers.events import EventController
from events.controllers.orders import OrderController, TicketController
from events.controllers.platform_admin import PlatformAdminController
from events.controllers.staff import StaffController
from events.exceptions import BoxofficeError

from .exception_handlers import (
    handle_boxoffice_error,
    handle_django_validation_error,
    handle_general_exception,
)

api = NinjaExtraAPI(
    title="Boxoffice API",
    docs_url="/docs",
    version=settings.VERSION,
    description=f"Boxoffice API {settings.VERSION}",
    app_name=f"boxoffice-api-{settings.VERSION}",
    urls_namespace="api",
    servers=[
        {"url": settings.SERVICE_URL, "description": settings.SERVICE_DESCRIPTION},
    ],
    throttle=[AnonDefaultThrottle(), UserDefaultThrottle()],
)


@api.get("/version", tags=["Version"], response={200: VersionResponse})
def version(request: HttpRequest) -> tuple[int, VersionResponse]:
    """Get the API version.

    Args:
        request: The incoming HTTP request.

    Returns:
        The response status code and message.
    """
    return 200, VersionResponse(version=settings.VERSION)


@api.get("/healthcheck", tags=["Healthcheck"], response={200: ResponseOk})
def healthcheck(request: HttpRequest) -> tuple[int, ResponseOk]:
    """Check the health of the API."""
    return 200, ResponseOk()


api.register_controllers(
    # Auth/Account controllers
    NinjaJWTDefaultController,
    AccountController,
    # Event controllers
    EventController,
    EventAdminController,
    PlatformAdminController,
    OrderController,
    TicketController,
    StaffController,
)

EXCEPTION_HANDLERS = {
    Exception: handle_general_exception,
    ValidationError: handle_django_validation_error,
    BoxofficeError: handle_boxoffice_error,
}

for exc, handler in EXCEPTION_HANDLERS.items():
    api.add_exception_handler(exc, handler)
