"""
OnuStatusMap - Error Types

Typed exceptions raised by the API client, rate limiter and ONU service.
Each exception carries an ErrorKind so the presentation layer can pick a
message and HTTP status without parsing free text.
"""

from datetime import datetime
from enum import Enum
from typing import Optional


class ErrorKind(str, Enum):
    """Machine-readable error codes."""
    QUOTA_EXCEEDED = "quota_exceeded"
    TRANSPORT = "transport"
    APPLICATION = "application"
    INVALID_CREDENTIALS = "invalid_credentials"
    NOT_FOUND = "not_found"


class OnuMapError(Exception):
    """Base class for all errors surfaced by the core."""
    kind: ErrorKind = ErrorKind.APPLICATION

    def to_dict(self) -> dict:
        """Convert to dictionary for JSON error responses."""
        return {"error": str(self), "error_kind": self.kind.value}


class QuotaExceededError(OnuMapError):
    """
    Raised when a restricted endpoint class has used its hourly quota.

    Callers should retry after wait_minutes or rely on cached data.
    """
    kind = ErrorKind.QUOTA_EXCEEDED

    def __init__(
        self,
        endpoint_class: str,
        wait_minutes: int,
        reset_time: Optional[datetime] = None
    ):
        super().__init__(
            f"Rate limit exceeded for {endpoint_class}. Please wait {wait_minutes} minutes."
        )
        self.endpoint_class = endpoint_class
        self.wait_minutes = wait_minutes
        self.reset_time = reset_time

    def to_dict(self) -> dict:
        data = super().to_dict()
        data["wait_minutes"] = self.wait_minutes
        return data


class UpstreamTransportError(OnuMapError):
    """Timeout, connection failure or HTTP error status from the upstream API."""
    kind = ErrorKind.TRANSPORT

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


class UpstreamApplicationError(OnuMapError):
    """Upstream answered with a failure envelope (status: false) or no data."""
    kind = ErrorKind.APPLICATION


class InvalidCredentialsError(UpstreamApplicationError):
    """Upstream rejected the access token."""
    kind = ErrorKind.INVALID_CREDENTIALS


class OnuNotFoundError(OnuMapError):
    """The requested ONU does not exist or upstream refused to return it."""
    kind = ErrorKind.NOT_FOUND

    def __init__(self, external_id: str, reason: Optional[str] = None):
        message = f"ONU {external_id} not found"
        if reason:
            message = f"{message}: {reason}"
        super().__init__(message)
        self.external_id = external_id
