"""Map the exception hierarchy onto HTTP responses."""

import logging

from starlette.requests import Request
from starlette.responses import JSONResponse

from ridehail.core.exceptions import (
    AuthenticationError,
    AuthorizationError,
    ConfigurationError,
    ConflictError,
    ExternalServiceError,
    GuardViolationError,
    NotFoundError,
    ProcessorUnavailableError,
    RideHailError,
    ValidationError,
)

logger = logging.getLogger(__name__)

# Most specific classes first.
ERROR_RESPONSES: list[tuple[type[RideHailError], int, str]] = [
    (ValidationError, 400, "validation_error"),
    (AuthenticationError, 401, "authentication_error"),
    (AuthorizationError, 403, "authorization_error"),
    (NotFoundError, 404, "not_found"),
    (GuardViolationError, 409, "guard_violation"),
    (ConflictError, 409, "conflict"),
    (ProcessorUnavailableError, 503, "processor_unavailable"),
    (ExternalServiceError, 502, "external_service_error"),
    (ConfigurationError, 500, "configuration_error"),
]


def classify(exc: RideHailError) -> tuple[int, str]:
    for error_type, status_code, kind in ERROR_RESPONSES:
        if isinstance(exc, error_type):
            return status_code, kind
    return 500, "internal_error"


async def ridehail_error_handler(request: Request, exc: RideHailError) -> JSONResponse:
    status_code, kind = classify(exc)
    if status_code >= 500:
        logger.error(f"{request.method} {request.url.path} failed: {exc.message}")
    else:
        logger.info(f"{request.method} {request.url.path} -> {status_code} {kind}: {exc.message}")

    content: dict[str, object] = {"error": kind, "detail": exc.message}
    if exc.details:
        content["details"] = exc.details
    headers = {"WWW-Authenticate": "Bearer"} if status_code == 401 else None
    return JSONResponse(status_code=status_code, content=content, headers=headers)
