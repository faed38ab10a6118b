"""
Django REST Framework exception handler.

Billing errors pass through with their own status and code. DRF's own
exceptions (authentication, permissions, serializer validation, 404s) are
re-rendered in the same envelope so clients parse exactly one error shape.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional

from django.db.utils import OperationalError
from rest_framework import exceptions as drf_exceptions
from rest_framework.response import Response
from rest_framework.views import exception_handler

from .errors import (
    APIError,
    ErrorCode,
    ErrorDetail,
    ErrorResponse,
    FieldError,
    UnavailableError,
    new_request_id,
)

logger = logging.getLogger(__name__)

# Checked in order; NotAuthenticated must precede its parents.
DRF_ERROR_CODES = [
    (drf_exceptions.NotAuthenticated, ErrorCode.AUTHENTICATION_REQUIRED, "Authentication required. Please log in."),
    (drf_exceptions.AuthenticationFailed, ErrorCode.AUTHENTICATION_FAILED, None),
    (drf_exceptions.PermissionDenied, ErrorCode.PERMISSION_DENIED, None),
    (drf_exceptions.NotFound, ErrorCode.RESOURCE_NOT_FOUND, None),
    (drf_exceptions.ValidationError, ErrorCode.VALIDATION_ERROR, "Validation failed. Please check your input."),
]

DRF_FIELD_CODES = {
    "required": ErrorCode.FIELD_REQUIRED,
    "blank": ErrorCode.FIELD_REQUIRED,
    "null": ErrorCode.FIELD_REQUIRED,
    "max_length": ErrorCode.FIELD_TOO_LONG,
    "max_value": ErrorCode.FIELD_OUT_OF_RANGE,
    "min_value": ErrorCode.FIELD_OUT_OF_RANGE,
    "date": ErrorCode.FIELD_INVALID_FORMAT,
    "invalid_choice": ErrorCode.FIELD_INVALID,
}


def custom_exception_handler(exc: Exception, context: Dict[str, Any]) -> Optional[Response]:
    request = context.get("request")
    request_id = getattr(request, "request_id", None) or new_request_id()

    if isinstance(exc, OperationalError):
        # Lock wait timeouts and dropped connections.
        logger.warning("Database unavailable [request_id=%s]: %s", request_id, exc)
        exc = UnavailableError("The ledger database is busy. Please retry shortly.")

    if isinstance(exc, APIError):
        exc.request_id = request_id
        if exc.status >= 500:
            logger.warning("%s [request_id=%s]: %s", exc.code, request_id, exc.message)
        return Response(exc.to_response().to_dict(), status=exc.status)

    response = exception_handler(exc, context)
    if response is None:
        return None

    envelope = ErrorResponse(error=_describe(exc), request_id=request_id)
    return Response(envelope.to_dict(), status=response.status_code, headers=_passthrough_headers(response))


def _describe(exc: Exception) -> ErrorDetail:
    for exc_type, code, fixed_message in DRF_ERROR_CODES:
        if isinstance(exc, exc_type):
            fields = _field_errors(exc.detail) if exc_type is drf_exceptions.ValidationError else None
            return ErrorDetail(code=code.value, message=fixed_message or str(exc.detail), fields=fields)

    if isinstance(exc, drf_exceptions.APIException):
        return ErrorDetail(code=ErrorCode.INTERNAL_ERROR.value, message=str(exc.detail))
    return ErrorDetail(code=ErrorCode.INTERNAL_ERROR.value, message="An unexpected error occurred.")


def _passthrough_headers(response: Response) -> Dict[str, str]:
    return {name: response[name] for name in ("WWW-Authenticate", "Allow") if name in response}


def _field_errors(detail: Any, path: str = "") -> List[FieldError]:
    """Flatten DRF's nested ``ErrorDetail`` structure into dotted field paths."""
    if isinstance(detail, dict):
        flattened = []
        for name, nested in detail.items():
            flattened.extend(_field_errors(nested, f"{path}.{name}" if path else str(name)))
        return flattened

    if isinstance(detail, list):
        flattened = []
        for item in detail:
            flattened.extend(_field_errors(item, path))
        return flattened

    code = DRF_FIELD_CODES.get(getattr(detail, "code", ""), ErrorCode.FIELD_INVALID)
    return [FieldError(field=path or "__all__", code=code.value, message=str(detail))]
