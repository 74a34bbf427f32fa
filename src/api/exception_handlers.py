"""Exception handlers for the API."""

import traceback
import typing as t
from copy import deepcopy

import orjson
import structlog
from django.conf import settings
from django.core.exceptions import ValidationError
from django.http import HttpRequest
from ninja.responses import Response

from events.exceptions import BoxofficeError

logger = structlog.get_logger(__name__)


def handle_general_exception(request: HttpRequest, exc: Exception | t.Type[Exception]) -> Response:
    """Handle a general exception.

    The error is logged with the request context; the client only gets a generic message.

    Args:
        request: The incoming HTTP request.
        exc: The exception.

    Returns:
        The response.
    """
    json_payload: t.Any = None
    if request.method in ("POST", "PUT", "PATCH") and request.headers.get("Content-Type") == "application/json":
        try:
            json_payload = orjson.loads(request.body)
        except orjson.JSONDecodeError:
            json_payload = None
    if isinstance(json_payload, dict):
        json_payload = obfuscate(json_payload)
    logger.exception(
        "INTERNAL_SERVER_ERROR",
        method=request.method,
        path=request.path,
        headers=obfuscate(dict(request.headers)),
        query=obfuscate(request.GET.dict()),
        json_payload=json_payload,
    )
    data = {"detail": "Internal Server Error."}
    if settings.DEBUG:  # pragma: no cover
        data["traceback"] = traceback.format_exc()
    return Response(status=500, data=data)


def handle_django_validation_error(request: HttpRequest, exc: ValidationError | t.Type[ValidationError]) -> Response:
    """Handle a validation error.

    Args:
        request: The incoming HTTP request.
        exc: The exception.
    """
    logger.warning("VALIDATION_ERROR", path=request.path, errors=exc.messages)  # type: ignore[union-attr]
    if hasattr(exc, "error_dict"):
        error_dict = {k: [ee for e in v for ee in e] for k, v in exc.error_dict.items()}
    else:
        error_dict = {"__all__": list(exc.messages)}  # type: ignore[arg-type]
    return Response(status=400, data={"errors": error_dict})


def handle_boxoffice_error(request: HttpRequest, exc: BoxofficeError | t.Type[BoxofficeError]) -> Response:
    """Render a domain error as ``{"code", "detail", ...extra}`` with the error's status."""
    error = t.cast(BoxofficeError, exc)
    logger.info("DOMAIN_ERROR", path=request.path, code=error.code, detail=error.detail, **error.extra())
    return Response(status=error.status_code, data={"code": error.code, "detail": error.detail, **error.extra()})


SENSITIVE_KEYS = {"password", "token", "x-staff-token", "authorization", "authentication", "cookie"}


def obfuscate(data: dict[str, t.Any]) -> dict[str, t.Any]:
    """Obfuscate sensitive data in payloads and headers."""
    new_data = deepcopy(data)
    for key in data.keys():
        if key.lower() in SENSITIVE_KEYS:
            new_data[key] = "********"
    return new_data
