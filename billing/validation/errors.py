"""
Billing error taxonomy.

Every failure the engine reports is an ``APIError`` subclass that knows its
own HTTP status, machine-readable code and whether the caller may retry.
Services raise them directly; the DRF exception handler and the error
middleware render them unchanged:

    { success: false, error: { code, message, fields?, details?, retryable? }, request_id }

| Class                  | Status | Retry |
|------------------------|--------|-------|
| ValidationError        | 400    | no    |
| NotFoundError          | 404    | no    |
| ConflictError          | 409    | after re-selecting entries / reloading |
| InvalidTransitionError | 422    | no    |
| UnavailableError       | 503    | yes, with backoff |
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional

from django.http import JsonResponse


class ErrorCode(str, Enum):
    VALIDATION_ERROR = "VALIDATION_ERROR"
    FIELD_REQUIRED = "FIELD_REQUIRED"
    FIELD_INVALID = "FIELD_INVALID"
    FIELD_TOO_LONG = "FIELD_TOO_LONG"
    FIELD_OUT_OF_RANGE = "FIELD_OUT_OF_RANGE"
    FIELD_INVALID_FORMAT = "FIELD_INVALID_FORMAT"

    AUTHENTICATION_REQUIRED = "AUTHENTICATION_REQUIRED"
    AUTHENTICATION_FAILED = "AUTHENTICATION_FAILED"
    PERMISSION_DENIED = "PERMISSION_DENIED"

    RESOURCE_NOT_FOUND = "RESOURCE_NOT_FOUND"
    RESOURCE_CONFLICT = "RESOURCE_CONFLICT"
    INVALID_STATE_TRANSITION = "INVALID_STATE_TRANSITION"

    SERVICE_UNAVAILABLE = "SERVICE_UNAVAILABLE"
    INTERNAL_ERROR = "INTERNAL_ERROR"


def new_request_id() -> str:
    return str(uuid.uuid4())


@dataclass
class FieldError:
    field: str
    code: str
    message: str

    def to_dict(self) -> Dict[str, str]:
        return {"field": self.field, "code": self.code, "message": self.message}


@dataclass
class ErrorDetail:
    code: str
    message: str
    fields: Optional[List[FieldError]] = None
    details: Optional[Dict[str, Any]] = None
    retryable: bool = False

    def to_dict(self) -> Dict[str, Any]:
        body: Dict[str, Any] = {"code": self.code, "message": self.message}
        if self.fields:
            body["fields"] = [f.to_dict() for f in self.fields]
        if self.details:
            body["details"] = self.details
        if self.retryable:
            body["retryable"] = True
        return body


@dataclass
class ErrorResponse:
    error: ErrorDetail
    request_id: str = field(default_factory=new_request_id)

    def to_dict(self) -> Dict[str, Any]:
        return {"success": False, "error": self.error.to_dict(), "request_id": self.request_id}

    def to_json_response(self, status: int) -> JsonResponse:
        return JsonResponse(self.to_dict(), status=status)


class APIError(Exception):
    """Base class; subclasses pin ``code``, ``status`` and ``retryable``."""

    code: str = ErrorCode.INTERNAL_ERROR.value
    status: int = 500
    retryable: bool = False
    default_message = "An unexpected error occurred."

    def __init__(
        self,
        message: Optional[str] = None,
        fields: Optional[List[FieldError]] = None,
        details: Optional[Dict[str, Any]] = None,
        request_id: Optional[str] = None,
    ):
        self.message = message or self.default_message
        self.fields = fields
        self.details = details
        self.request_id = request_id or new_request_id()
        super().__init__(self.message)

    def to_response(self) -> ErrorResponse:
        detail = ErrorDetail(
            code=self.code,
            message=self.message,
            fields=self.fields,
            details=self.details,
            retryable=self.retryable,
        )
        return ErrorResponse(error=detail, request_id=self.request_id)

    def to_json_response(self) -> JsonResponse:
        return self.to_response().to_json_response(self.status)


class ValidationError(APIError):
    code = ErrorCode.VALIDATION_ERROR.value
    status = 400
    default_message = "Validation failed"

    @classmethod
    def from_dict(cls, errors: Dict[str, Any], message: str = "Validation failed") -> "ValidationError":
        return cls(message, fields=format_validation_errors(errors))


class NotFoundError(APIError):
    code = ErrorCode.RESOURCE_NOT_FOUND.value
    status = 404
    default_message = "Resource not found"


class ConflictError(APIError):
    code = ErrorCode.RESOURCE_CONFLICT.value
    status = 409
    default_message = "Resource conflict"


class InvalidTransitionError(APIError):
    code = ErrorCode.INVALID_STATE_TRANSITION.value
    status = 422

    def __init__(self, current: str, requested: str, message: Optional[str] = None):
        self.current = current
        self.requested = requested
        super().__init__(
            message or f"Cannot transition invoice from '{current}' to '{requested}'",
            details={"current": current, "requested": requested},
        )


class UnavailableError(APIError):
    code = ErrorCode.SERVICE_UNAVAILABLE.value
    status = 503
    retryable = True
    default_message = "A downstream service is unavailable. Please retry shortly."


def format_validation_errors(errors: Dict[str, Any], prefix: str = "") -> List[FieldError]:
    """Flatten a ``{field: [messages]}`` mapping (nested dicts become dotted paths)."""
    flattened = []
    for name, problems in errors.items():
        path = f"{prefix}{name}"
        if isinstance(problems, dict):
            flattened.extend(format_validation_errors(problems, f"{path}."))
            continue
        if not isinstance(problems, list):
            problems = [problems]
        for problem in problems:
            if isinstance(problem, dict):
                flattened.extend(format_validation_errors(problem, f"{path}."))
            else:
                text = str(problem)
                flattened.append(FieldError(field=path, code=_infer_error_code(text), message=text))
    return flattened


def _infer_error_code(message: str) -> str:
    text = message.lower()
    if any(word in text for word in ("required", "blank", "null")):
        return ErrorCode.FIELD_REQUIRED.value
    if any(word in text for word in ("greater than", "less than", "negative")):
        return ErrorCode.FIELD_OUT_OF_RANGE.value
    if "too long" in text:
        return ErrorCode.FIELD_TOO_LONG.value
    if "valid" in text or "format" in text:
        return ErrorCode.FIELD_INVALID_FORMAT.value
    return ErrorCode.FIELD_INVALID.value
