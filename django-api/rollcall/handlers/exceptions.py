"""Maps domain errors to HTTP responses.

Installed as REST_FRAMEWORK["EXCEPTION_HANDLER"]. Bodies carry a stable
``code`` and a user-safe ``detail``; nothing internal leaks out.
"""

import typing as t

import structlog
from rest_framework import status
from rest_framework.exceptions import ValidationError
from rest_framework.response import Response
from rest_framework.views import exception_handler as drf_exception_handler

from rollcall.domain.errors import DomainError, ErrorCode

logger = structlog.get_logger(__name__)

INVALID_INPUT = "INVALID_INPUT"

STATUS_BY_CODE = {
    ErrorCode.INVALID_IDENTIFIER: status.HTTP_400_BAD_REQUEST,
    ErrorCode.INVALID_CAPACITY_CONFIG: status.HTTP_400_BAD_REQUEST,
    ErrorCode.INVALID_OR_EXPIRED: status.HTTP_400_BAD_REQUEST,
    ErrorCode.SLOT_NOT_FOUND: status.HTTP_400_BAD_REQUEST,
    ErrorCode.INVALID_TRANSITION: status.HTTP_400_BAD_REQUEST,
    ErrorCode.EVENT_ALREADY_STARTED: status.HTTP_400_BAD_REQUEST,
    ErrorCode.NOT_BANNED: status.HTTP_400_BAD_REQUEST,
    ErrorCode.BANNED: status.HTTP_403_FORBIDDEN,
    ErrorCode.UNAUTHORIZED: status.HTTP_403_FORBIDDEN,
    ErrorCode.NOT_REGISTERED: status.HTTP_404_NOT_FOUND,
    ErrorCode.EVENT_NOT_FOUND: status.HTTP_404_NOT_FOUND,
    ErrorCode.ALREADY_REGISTERED: status.HTTP_409_CONFLICT,
    ErrorCode.NO_SEATS: status.HTTP_409_CONFLICT,
    ErrorCode.CATEGORY_FULL: status.HTTP_409_CONFLICT,
}


def domain_error_response(exc: DomainError) -> Response:
    return Response(
        {"code": exc.code.value, "detail": exc.message},
        status=STATUS_BY_CODE.get(exc.code, status.HTTP_400_BAD_REQUEST),
    )


def exception_handler(exc: Exception, context: dict[str, t.Any]) -> Response | None:
    """Handle domain errors, defer everything else to DRF."""
    if isinstance(exc, DomainError):
        view = context.get("view")
        logger.info(
            "domain_error",
            code=exc.code.value,
            view=view.__class__.__name__ if view else None,
        )
        return domain_error_response(exc)

    response = drf_exception_handler(exc, context)
    if response is None:
        return None
    if isinstance(exc, ValidationError):
        response.data = {"code": INVALID_INPUT, "detail": "Invalid request body.", "errors": response.data}
    elif isinstance(response.data, dict) and "detail" in response.data:
        response.data = {
            "code": getattr(response.data["detail"], "code", "error").upper(),
            "detail": str(response.data["detail"]),
        }
    return response
