# mozaiks_data/errors.py
"""
Error taxonomy for the plugin data gateway.

Every error carries the HTTP status and a stable machine-readable reason so
the boundary layer can render it without inspecting the message.
"""
from __future__ import annotations

from typing import Any, Dict, Optional


class DataGatewayError(Exception):
    status_code: int = 500
    reason: str = "internal_error"
    retryable: bool = False

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message

    def to_envelope(self, *, detail: Optional[str] = None) -> Dict[str, Any]:
        body: Dict[str, Any] = {
            "status": self.status_code,
            "error": self.reason,
            "message": detail if detail is not None else self.message,
        }
        if self.retryable:
            body["retryable"] = True
        return body


class MalformedRequest(DataGatewayError):
    status_code = 422
    reason = "malformed_request"


class NotFound(DataGatewayError):
    status_code = 404

    def __init__(self, record_class: str, record_id: str | None = None) -> None:
        super().__init__(f"{record_class} with this id does not exist")
        self.record_class = record_class
        self.record_id = record_id
        self.reason = f"{record_class}_not_found"


class InvalidDestination(DataGatewayError):
    status_code = 400
    reason = "invalid_destination"

    def __init__(self, message: str = "invalid data destination") -> None:
        super().__init__(message)


class InvalidPayloadShape(DataGatewayError):
    status_code = 422
    reason = "invalid_payload_shape"


class RequestTooLarge(DataGatewayError):
    status_code = 413
    reason = "request_too_large"


class StoreFailure(DataGatewayError):
    status_code = 500
    reason = "store_failure"


class StoreUnavailable(StoreFailure):
    """The backing store could not be reached. Safe to retry."""

    status_code = 503
    reason = "store_unavailable"
    retryable = True


class StoreConflict(StoreFailure):
    """The write collided with existing data (duplicate key)."""

    status_code = 409
    reason = "store_conflict"


def safe_error_detail(public_message: str, exc: Exception, *, production: bool) -> str:
    """Return a client-facing error detail without leaking internals in production."""
    if production:
        return public_message
    return f"{public_message}: {exc}"


__all__ = [
    "DataGatewayError",
    "MalformedRequest",
    "NotFound",
    "InvalidDestination",
    "InvalidPayloadShape",
    "RequestTooLarge",
    "StoreFailure",
    "StoreUnavailable",
    "StoreConflict",
    "safe_error_detail",
]
