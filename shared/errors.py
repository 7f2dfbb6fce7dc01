"""
Shared error handling for the Bus Routes service.
"""

from typing import Dict, Any, Optional
from pydantic import BaseModel

from opentelemetry import trace


class ErrorResponse(BaseModel):
    """Standard error response format (the failure half of the API envelope)."""

    success: bool = False
    message: str
    data: None = None
    code: str
    trace_id: Optional[str] = None
    details: Dict[str, Any] = {}


class AccessLayerException(Exception):
    """Base exception for service errors."""

    status_code: int = 500

    def __init__(self, code: str, message: str, details: Optional[Dict[str, Any]] = None):
        self.code = code
        self.message = message
        self.details = details or {}
        super().__init__(message)

    def to_response(self) -> ErrorResponse:
        """Convert to error response."""
        return ErrorResponse(
            trace_id=current_trace_id(),
            code=self.code,
            message=self.message,
            details=self.details
        )


class InvalidRequestError(AccessLayerException):
    """Missing or malformed selector, body or field names."""

    status_code = 400

    def __init__(self, message: str = "Invalid request", details: Optional[Dict[str, Any]] = None):
        super().__init__("INVALID_REQUEST", message, details)


class NotFoundError(AccessLayerException):
    """No record matched the given identifier or key."""

    status_code = 404

    def __init__(self, message: str = "Not found", details: Optional[Dict[str, Any]] = None):
        super().__init__("NOT_FOUND", message, details)


class StoreError(AccessLayerException):
    """Relational store failure: connectivity, constraint violation, bad query."""

    status_code = 500

    def __init__(self, message: str = "Store error", details: Optional[Dict[str, Any]] = None):
        super().__init__("STORE_ERROR", message, details)


class CacheError(AccessLayerException):
    """Cache engine failure. Carried in cache results, never surfaced to clients."""

    status_code = 500

    def __init__(self, operation: str, message: str = "Cache error", details: Optional[Dict[str, Any]] = None):
        self.operation = operation
        super().__init__("CACHE_ERROR", f"{operation}: {message}", details)


class ConfigurationError(AccessLayerException):
    """Invalid or incomplete startup configuration."""

    status_code = 500

    def __init__(self, message: str = "Configuration error", details: Optional[Dict[str, Any]] = None):
        super().__init__("CONFIGURATION_ERROR", message, details)


def current_trace_id() -> Optional[str]:
    """Return the active trace id as hex, if a recording span exists."""
    current_span = trace.get_current_span()
    if current_span and current_span.is_recording():
        span_context = current_span.get_span_context()
        if span_context.trace_id != 0:
            return f"{span_context.trace_id:032x}"
    return None
