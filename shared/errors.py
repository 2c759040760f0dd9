"""
Shared error handling for the admin console data layer.
"""

from typing import Dict, Any, Optional
from pydantic import BaseModel, Field


class ErrorResponse(BaseModel):
    """Standard error payload exposed to views."""

    request_id: Optional[str] = None
    code: str
    message: str
    status: Optional[int] = None
    details: Dict[str, Any] = Field(default_factory=dict)


class ConsoleError(Exception):
    """Base exception for the console data layer."""

    def __init__(self, code: str, message: str, details: Optional[Dict[str, Any]] = None):
        self.code = code
        self.message = message
        self.details = details or {}
        self.request_id: Optional[str] = None
        super().__init__(message)

    @property
    def status(self) -> Optional[int]:
        return None

    def to_response(self) -> ErrorResponse:
        """Convert to error response."""
        return ErrorResponse(
            request_id=self.request_id,
            code=self.code,
            message=self.message,
            status=self.status,
            details=self.details
        )


class NetworkError(ConsoleError):
    """Transport failure, no response received."""

    def __init__(self, message: str = "Network request failed", details: Optional[Dict[str, Any]] = None):
        super().__init__("NETWORK_ERROR", message, details)


class ServerError(ConsoleError):
    """Non-2xx response carrying a structured body."""

    def __init__(self, status: int, error_body: Any = None, message: Optional[str] = None):
        self.status_code = status
        self.error_body = error_body
        if message is None:
            message = _extract_message(error_body) or f"Server responded with status {status}"
        super().__init__("SERVER_ERROR", message, {"status": status, "body": error_body})

    @property
    def status(self) -> Optional[int]:
        return self.status_code


class AuthenticationRequiredError(ConsoleError):
    """Request needs a bearer token that is not set."""

    def __init__(self, message: str = "No token found", details: Optional[Dict[str, Any]] = None):
        super().__init__("AUTHENTICATION_REQUIRED", message, details)


class CacheMissError(ConsoleError):
    """Read of an unregistered cache key (caller bug)."""

    def __init__(self, key: Any):
        self.key = key
        super().__init__("CACHE_MISS", f"No cache entry registered for {key!r}", {"key": repr(key)})


class InvalidStateError(ConsoleError):
    """Operation not allowed in the object's current state."""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__("INVALID_STATE", message, details)


def _extract_message(error_body: Any) -> Optional[str]:
    if isinstance(error_body, dict):
        message = error_body.get("message") or error_body.get("error")
        if isinstance(message, str):
            return message
    if isinstance(error_body, str) and error_body:
        return error_body
    return None
