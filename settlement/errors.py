"""Error types raised by the settlement service.

Every error carries a stable ``code`` and HTTP ``status``. The API layer
renders them as ``{"ok": false, "code": ..., "message": ...}``.
"""

from typing import Any


class ServiceError(Exception):
    """Base class for all settlement errors."""

    code = "internal_error"
    status = 500
    default_message = "Internal server error"

    def __init__(self, message: str | None = None, details: dict[str, Any] | None = None):
        self.message = (message or "").strip() or self.default_message
        self.details = details or {}
        super().__init__(self.message)

    def __str__(self) -> str:
        if self.details:
            details_str = ", ".join(f"{k}={v}" for k, v in self.details.items())
            return f"{self.message} ({details_str})"
        return self.message


class Unauthorized(ServiceError):
    code = "unauthorized"
    status = 401
    default_message = "Authorization token required"


class Forbidden(ServiceError):
    code = "forbidden"
    status = 403
    default_message = "Admin privileges required"


class NotFound(ServiceError):
    code = "trade_not_found"
    status = 404
    default_message = "Trade not found or not open"


class ValidationFailed(ServiceError):
    code = "validation_error"
    status = 400
    default_message = "Invalid request"


class AlreadyClosed(ServiceError):
    """Lost the race to close: the status-guarded update matched no row."""

    code = "trade_already_closed"
    status = 409
    default_message = "Trade is already closed"


class InvalidInput(ServiceError):
    """Stored trade terms cannot produce a P&L. Indicates a data-integrity bug."""

    code = "invalid_trade_terms"
    status = 500
    default_message = "Trade terms are invalid"


class PriceUnavailable(ServiceError):
    """Price source unreachable or returned malformed data."""

    code = "price_unavailable"
    status = 502
    default_message = "Price source unavailable"


class SettlementFailure(ServiceError):
    """Balance write failed after the trade was closed."""

    code = "settlement_failed"
    status = 500
    default_message = "Balance settlement failed"


ERROR_KINDS: dict[str, type[ServiceError]] = {
    "unauthorized": Unauthorized,
    "forbidden": Forbidden,
    "not_found": NotFound,
    "validation": ValidationFailed,
    "conflict": AlreadyClosed,
    "invalid_input": InvalidInput,
    "upstream_unavailable": PriceUnavailable,
    "settlement_failure": SettlementFailure,
}


def make_error(kind: str, message: str | None = None, **details: Any) -> ServiceError:
    """Build an error by kind name. Unknown kinds become a plain ServiceError."""
    cls = ERROR_KINDS.get(kind, ServiceError)
    return cls(message, details or None)
