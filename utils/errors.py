"""
Application error taxonomy.

Every error carries a stable ``kind`` and an HTTP status. ``message`` is safe
to show to end users; ``detail`` is for the server log only.
"""

from typing import Any, Dict, Optional


class AppError(Exception):
    kind = "internal"
    status_code = 500
    default_message = "Something went wrong"

    def __init__(self, message: Optional[str] = None, *, detail: Optional[Dict[str, Any]] = None):
        self.message = message or self.default_message
        self.detail = detail or {}
        super().__init__(self.message)

    def to_dict(self) -> Dict[str, Any]:
        return {"error": {"kind": self.kind, "message": self.message}}


class Unauthorized(AppError):
    kind = "unauthorized"
    status_code = 401
    default_message = "Unauthorized"


class Forbidden(AppError):
    kind = "forbidden"
    status_code = 403
    default_message = "Forbidden"


class NotFound(AppError):
    kind = "not_found"
    status_code = 404
    default_message = "Not found"


class ValidationError(AppError):
    kind = "validation_error"
    status_code = 400
    default_message = "Invalid request"


class ConflictError(AppError):
    kind = "conflict"
    status_code = 409
    default_message = "Request conflicts with the current state"


class AmountMismatchError(ConflictError):
    default_message = "Payment could not be confirmed"

    def __init__(self, expected_minor_units: int, paid_minor_units: int):
        super().__init__(
            detail={
                "reason": "amount mismatch",
                "expected_minor_units": expected_minor_units,
                "paid_minor_units": paid_minor_units,
            }
        )
        self.expected_minor_units = expected_minor_units
        self.paid_minor_units = paid_minor_units


class UpstreamError(AppError):
    kind = "upstream_error"
    status_code = 502
    default_message = "Payment verification failed"
