"""
Shared error handling for the Market Gateway.
"""

from typing import Dict, Any, Optional
from pydantic import BaseModel

from opentelemetry import trace


class ErrorResponse(BaseModel):
    """Error envelope returned to external callers."""

    error: str


class GatewayException(Exception):
    """Base exception for gateway components."""

    status_code: int = 500

    def __init__(
        self,
        code: str,
        message: str,
        details: Optional[Dict[str, Any]] = None,
        status_code: Optional[int] = None,
    ):
        self.code = code
        self.message = message
        self.details = details or {}
        if status_code is not None:
            self.status_code = status_code
        super().__init__(message)

    def trace_id(self) -> Optional[str]:
        """Trace ID of the current span, if tracing is active."""
        current_span = trace.get_current_span()
        if current_span and current_span.is_recording():
            span_context = current_span.get_span_context()
            if span_context.trace_id != 0:
                return f"{span_context.trace_id:032x}"
        return None

    def to_response(self) -> ErrorResponse:
        """Convert to the public error envelope."""
        return ErrorResponse(error=self.message)


class ValidationError(GatewayException):
    """Caller supplied an invalid argument."""

    status_code = 400

    def __init__(self, message: str = "Validation failed", details: Optional[Dict[str, Any]] = None):
        super().__init__("VALIDATION_ERROR", message, details)


class MissingEndpointError(GatewayException):
    """The reserved routing parameter was not supplied."""

    status_code = 400

    def __init__(self, message: str = "Missing required 'endpoint' query parameter"):
        super().__init__("MISSING_ENDPOINT", message)


class RequestFailedError(GatewayException):
    """Upstream answered with a non-success status."""

    def __init__(self, status_code: int, message: Optional[str] = None, details: Optional[Dict[str, Any]] = None):
        super().__init__(
            "REQUEST_FAILED",
            message or f"API request failed with status {status_code}",
            details,
            status_code=status_code,
        )


class TransportFailureError(GatewayException):
    """Network-level failure before any upstream status was obtained."""

    status_code = 500

    def __init__(self, message: str = "Upstream transport failure", details: Optional[Dict[str, Any]] = None):
        super().__init__("TRANSPORT_FAILURE", message, details)


class DecodeFailureError(GatewayException):
    """A payload could not be parsed as the expected structure."""

    status_code = 500

    def __init__(self, message: str = "Failed to decode payload", details: Optional[Dict[str, Any]] = None):
        super().__init__("DECODE_FAILURE", message, details)


class CacheUnavailableError(GatewayException):
    """Cache store lookup or write failed."""

    status_code = 503

    def __init__(self, message: str = "Cache store unavailable", details: Optional[Dict[str, Any]] = None):
        super().__init__("CACHE_UNAVAILABLE", message, details)


class ConfigurationError(GatewayException):
    """Server-side configuration is missing or invalid."""

    status_code = 500

    def __init__(self, message: str = "Gateway is misconfigured", details: Optional[Dict[str, Any]] = None):
        super().__init__("CONFIGURATION_ERROR", message, details)
