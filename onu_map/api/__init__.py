"""
OnuStatusMap - API modules

This package contains the SmartOLT API client, the upstream call gate
and the error types shared by the core.
"""

from onu_map.api.errors import (
    ErrorKind,
    OnuMapError,
    QuotaExceededError,
    UpstreamTransportError,
    UpstreamApplicationError,
    InvalidCredentialsError,
    OnuNotFoundError
)

from onu_map.api.rate_limiter import (
    EndpointClass,
    QuotaCheck,
    RateLimiter
)

from onu_map.api.smartolt_client import (
    SmartOltConnection,
    SmartOltOnuOperations,
    SmartOltSystemOperations,
    SmartOltAPIClient
)

__all__ = [
    # Errors
    "ErrorKind",
    "OnuMapError",
    "QuotaExceededError",
    "UpstreamTransportError",
    "UpstreamApplicationError",
    "InvalidCredentialsError",
    "OnuNotFoundError",
    # Call gate
    "EndpointClass",
    "QuotaCheck",
    "RateLimiter",
    # Client
    "SmartOltConnection",
    "SmartOltOnuOperations",
    "SmartOltSystemOperations",
    "SmartOltAPIClient"
]
