"""
Core error taxonomy.

Every service raises one of these for expected failures; routes translate
them into JSON responses with the matching HTTP status. Anything else that
escapes a service is an unexpected failure and is logged as such.
"""


class CoreError(Exception):
    """Base class for expected, caller-facing failures."""
    http_status = 400
    code = "error"

    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message)
        self.details = details or {}

    def to_dict(self) -> dict:
        payload = {"error": str(self), "code": self.code}
        if self.details:
            payload["details"] = self.details
        return payload


class ValidationError(CoreError):
    """Malformed or out-of-range input."""
    http_status = 400
    code = "validation_error"


class NotFoundError(CoreError):
    """Missing product, order or field (or one owned by another tenant)."""
    http_status = 404
    code = "not_found"


class InvariantError(CoreError):
    """The operation would break a standing rule (active fields, discount, stock)."""
    http_status = 409
    code = "invariant_violation"


class InsufficientStockError(InvariantError):
    """Requested quantity exceeds the stock on hand."""
    code = "insufficient_stock"


class DuplicateError(CoreError):
    """A field key (or idempotency key) collides with an existing one."""
    http_status = 409
    code = "duplicate"


class ConfigurationError(CoreError):
    """Backing store is not provisioned; run `flask system init-db`."""
    http_status = 503
    code = "not_provisioned"


def error_response(exc: CoreError):
    """(body, status) tuple for a Flask view."""
    return exc.to_dict(), exc.http_status
