"""
Billing error taxonomy.

Services raise these; the DRF exception handler and the error middleware
render them in the standard envelope.
"""

from .errors import (
    APIError,
    ConflictError,
    ErrorCode,
    ErrorResponse,
    FieldError,
    InvalidTransitionError,
    NotFoundError,
    UnavailableError,
    ValidationError,
    format_validation_errors,
)

__all__ = [
    "APIError",
    "ConflictError",
    "ErrorCode",
    "ErrorResponse",
    "FieldError",
    "InvalidTransitionError",
    "NotFoundError",
    "UnavailableError",
    "ValidationError",
    "format_validation_errors",
]
