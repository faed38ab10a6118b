"""
Error Handling Middleware

Catches exceptions that escape views (outside DRF's own handler) and
returns the standard JSON error envelope for API and health routes.
Everything else falls through to Django's default handling.
"""

from __future__ import annotations

import logging
from typing import Callable, Optional, Tuple

from django.conf import settings
from django.core.exceptions import PermissionDenied, ValidationError as DjangoValidationError
from django.db.utils import OperationalError
from django.http import Http404, HttpRequest, HttpResponse

from .errors import (
    APIError,
    ErrorCode,
    ErrorDetail,
    ErrorResponse,
    FieldError,
    UnavailableError,
    format_validation_errors,
    new_request_id,
)

logger = logging.getLogger(__name__)

JSON_PATH_PREFIXES = ("/api/", "/health/")


class ErrorHandlingMiddleware:
    def __init__(self, get_response: Callable):
        self.get_response = get_response

    def __call__(self, request: HttpRequest) -> HttpResponse:
        if not getattr(request, "request_id", None):
            request.request_id = new_request_id()
        return self.get_response(request)

    def process_exception(self, request: HttpRequest, exc: Exception) -> Optional[HttpResponse]:
        if not self._wants_json(request):
            return None

        request_id = getattr(request, "request_id", None) or new_request_id()

        if isinstance(exc, OperationalError):
            logger.warning("Database unavailable [request_id=%s]: %s", request_id, exc)
            exc = UnavailableError("The ledger database is busy. Please retry shortly.")

        if isinstance(exc, APIError):
            exc.request_id = request_id
            return exc.to_json_response()

        status, detail = self._describe(exc)
        return ErrorResponse(error=detail, request_id=request_id).to_json_response(status)

    @staticmethod
    def _describe(exc: Exception) -> Tuple[int, ErrorDetail]:
        if isinstance(exc, Http404):
            return 404, ErrorDetail(ErrorCode.RESOURCE_NOT_FOUND.value, str(exc) or "Resource not found")

        if isinstance(exc, PermissionDenied):
            return 403, ErrorDetail(ErrorCode.PERMISSION_DENIED.value, str(exc) or "Permission denied")

        if isinstance(exc, DjangoValidationError):
            if hasattr(exc, "message_dict"):
                fields = format_validation_errors(exc.message_dict)
            else:
                fields = [FieldError("__all__", ErrorCode.VALIDATION_ERROR.value, " ".join(exc.messages))]
            return 400, ErrorDetail(ErrorCode.VALIDATION_ERROR.value, "Validation failed", fields=fields)

        logger.exception("Unhandled exception: %s", exc)
        if settings.DEBUG:
            message = f"{type(exc).__name__}: {exc}"
        else:
            message = "An unexpected error occurred. Please try again later."
        return 500, ErrorDetail(ErrorCode.INTERNAL_ERROR.value, message)

    @staticmethod
    def _wants_json(request: HttpRequest) -> bool:
        if request.path.startswith(JSON_PATH_PREFIXES):
            return True
        content_type = request.content_type or ""
        accept = request.headers.get("Accept", "")
        return "application/json" in content_type or "application/json" in accept
