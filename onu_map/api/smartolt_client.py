"""
OnuStatusMap - Async SmartOLT API Client

This module provides asynchronous access to the SmartOLT REST API using aiohttp.
Every call passes through the RateLimiter: restricted bulk endpoints first
reserve a quota slot, then all calls wait for the global spacing clock.

Split into focused classes:
- SmartOltConnection: Session management, call gating and envelope checks
- SmartOltOnuOperations: ONU list, status, GPS, detail and signal endpoints
- SmartOltSystemOperations: OLT inventory and connection test
- SmartOltAPIClient: Facade used by the ONU service
"""

import asyncio
import logging
from typing import Any, Dict, Optional

import aiohttp

from onu_map.api.errors import (
    InvalidCredentialsError,
    UpstreamApplicationError,
    UpstreamTransportError,
)
from onu_map.api.rate_limiter import EndpointClass, RateLimiter
from onu_map.utils.config import SmartOltConfig


logger = logging.getLogger(__name__)

# Substrings SmartOLT uses in error messages about the X-Token header
CREDENTIAL_ERROR_MARKERS = (
    "token",
    "api key",
    "apikey",
    "credential",
    "unauthorized",
    "forbidden",
    "not authorized",
)


def is_credential_message(message: Optional[str]) -> bool:
    """True when an upstream error message is about the access token."""
    if not message:
        return False
    lowered = message.lower()
    return any(marker in lowered for marker in CREDENTIAL_ERROR_MARKERS)


class SmartOltConnection:
    """
    Manages the aiohttp session and gates every request.

    Responsibilities:
    - Initialize and maintain aiohttp ClientSession with X-Token header
    - Reserve quota for restricted endpoint classes
    - Apply global call spacing
    - Turn transport failures and failure envelopes into typed errors
    """

    def __init__(self, smartolt_config: SmartOltConfig, rate_limiter: RateLimiter):
        """
        Initialize the connection manager.

        Args:
            smartolt_config: API base URL, token and timeout
            rate_limiter: Shared call gate
        """
        self.config = smartolt_config
        self.rate_limiter = rate_limiter
        self.session: Optional[aiohttp.ClientSession] = None

        base_url = smartolt_config.base_url.rstrip("/")
        if not base_url.startswith("http"):
            base_url = f"https://{base_url}"
        self.base_url = base_url

        self.headers = {
            "X-Token": smartolt_config.api_key or "",
            "Content-Type": "application/json",
            "Accept": "application/json"
        }

        logger.info(f"[INFO] SmartOLT API connection configured for {self.base_url}")

    async def _ensure_session(self) -> aiohttp.ClientSession:
        """Ensure aiohttp session exists, creating if needed."""
        if self.session is None or self.session.closed:
            timeout = aiohttp.ClientTimeout(total=self.config.timeout)
            self.session = aiohttp.ClientSession(
                headers=self.headers,
                timeout=timeout
            )
            logger.debug("Created new aiohttp session")
        return self.session

    def _check_envelope(self, operation: str, data: Any) -> Dict[str, Any]:
        """
        Validate the SmartOLT response envelope.

        Raises:
            InvalidCredentialsError: Failure envelope about the access token
            UpstreamApplicationError: Empty body or any other failure envelope
        """
        if not data:
            raise UpstreamApplicationError(f"{operation}: empty response from API")
        if not isinstance(data, dict):
            raise UpstreamApplicationError(f"{operation}: unexpected response type {type(data).__name__}")

        if data.get("status") is False:
            message = data.get("error") or data.get("message") or "API returned error status"
            if is_credential_message(message):
                raise InvalidCredentialsError(f"{operation}: {message}")
            raise UpstreamApplicationError(f"{operation}: {message}")

        return data

    async def _get(self, operation: str, endpoint: str, params: Optional[Dict[str, Any]]) -> Any:
        """Issue one GET request and decode JSON, mapping transport failures."""
        session = await self._ensure_session()
        url = f"{self.base_url}{endpoint}"
        logger.debug(f"API Request: GET {endpoint} params={params or {}}")

        try:
            async with session.get(url, params=params or None) as response:
                if response.status in (401, 403):
                    text = await response.text()
                    raise InvalidCredentialsError(
                        f"{operation}: upstream rejected credentials ({response.status}) {text[:200]}"
                    )
                if response.status >= 400:
                    text = await response.text()
                    raise UpstreamTransportError(
                        f"{operation}: HTTP {response.status} {text[:200]}",
                        status_code=response.status
                    )
                logger.debug(f"API Response: {response.status} {endpoint}")
                return await response.json(content_type=None)
        except asyncio.TimeoutError as error:
            raise UpstreamTransportError(
                f"{operation}: timed out after {self.config.timeout:.0f}s"
            ) from error
        except aiohttp.ClientError as error:
            raise UpstreamTransportError(f"{operation}: {error}") from error
        except ValueError as error:
            raise UpstreamApplicationError(f"{operation}: invalid JSON in response") from error

    async def execute_get_async(
        self,
        operation: str,
        endpoint: str,
        params: Optional[Dict[str, Any]] = None,
        endpoint_class: EndpointClass = EndpointClass.NORMAL
    ) -> Dict[str, Any]:
        """
        Execute a gated GET request.

        The quota slot is only consumed when the call succeeds; failed calls
        are not recorded. No retries are attempted here.

        Args:
            operation: Description of the operation (for logging)
            endpoint: API endpoint path (e.g., /onu/get_onus_statuses)
            params: Optional query parameters
            endpoint_class: Budget class of the endpoint

        Returns:
            Parsed JSON response dictionary (success envelope)

        Raises:
            QuotaExceededError: Restricted class has no calls left this hour
            UpstreamTransportError: Timeout, connection or HTTP error
            UpstreamApplicationError: Failure envelope from SmartOLT
        """
        try:
            async with self.rate_limiter.reserve(endpoint_class):
                await self.rate_limiter.throttle()
                raw = await self._get(operation, endpoint, params)
                data = self._check_envelope(operation, raw)
                self.rate_limiter.record_call(endpoint_class)
                return data
        except Exception as error:
            logger.error(f"[ERROR] API request failed for {endpoint}: {error}")
            raise

    async def close(self) -> None:
        """Close the aiohttp session and clean up resources."""
        if self.session and not self.session.closed:
            await self.session.close()
            logger.debug("Closed aiohttp session")
        self.session = None


class SmartOltOnuOperations:
    """
    ONU endpoints.

    The two bulk endpoints (all details, all GPS coordinates) are restricted
    by SmartOLT to a few calls per hour.
    """

    def __init__(self, connection: SmartOltConnection):
        self.connection = connection

    async def get_all_onus_details(self, params: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        return await self.connection.execute_get_async(
            "Get all ONUs details",
            "/onu/get_all_onus_details",
            params,
            EndpointClass.DETAILS
        )

    async def get_all_onus_gps_coordinates(self, params: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        return await self.connection.execute_get_async(
            "Get all ONUs GPS coordinates",
            "/onu/get_all_onus_gps_coordinates",
            params,
            EndpointClass.GPS
        )

    async def get_onus_statuses(self, params: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        return await self.connection.execute_get_async(
            "Get ONU statuses",
            "/onu/get_onus_statuses",
            params
        )

    async def get_onu_details(self, external_id: str) -> Dict[str, Any]:
        return await self.connection.execute_get_async(
            f"Get ONU details {external_id}",
            f"/onu/get_onu_details/{external_id}"
        )

    async def get_onu_status(self, external_id: str) -> Dict[str, Any]:
        return await self.connection.execute_get_async(
            f"Get ONU status {external_id}",
            f"/onu/get_onu_status/{external_id}"
        )

    async def get_onu_signal(self, external_id: str) -> Dict[str, Any]:
        return await self.connection.execute_get_async(
            f"Get ONU signal {external_id}",
            f"/onu/get_onu_signal/{external_id}"
        )


class SmartOltSystemOperations:
    """OLT inventory and connectivity checks."""

    def __init__(self, connection: SmartOltConnection):
        self.connection = connection

    async def get_olts_list(self) -> Dict[str, Any]:
        return await self.connection.execute_get_async(
            "Get OLTs list",
            "/system/get_olts"
        )

    async def test_connection(self) -> Dict[str, Any]:
        """
        Verify the base URL and token with the cheapest endpoint.

        Returns:
            Dict with success (bool) and message; never raises for
            upstream failures so it can be used at startup
        """
        try:
            data = await self.get_olts_list()
        except InvalidCredentialsError as error:
            return {"success": False, "message": f"Invalid API key: {error}", "error_kind": error.kind.value}
        except (UpstreamTransportError, UpstreamApplicationError) as error:
            return {"success": False, "message": str(error), "error_kind": error.kind.value}

        olt_count = len(data.get("response") or [])
        return {"success": True, "message": f"Connected, {olt_count} OLTs visible"}


class SmartOltAPIClient:
    """
    Async facade over all SmartOLT operations.

    Usage:
        async with SmartOltAPIClient(smartolt_config, rate_limiter) as client:
            details = await client.get_all_onus_details({"olt_id": "1"})
    """

    def __init__(self, smartolt_config: SmartOltConfig, rate_limiter: RateLimiter):
        """
        Initialize the API client with all operation handlers.

        Args:
            smartolt_config: SmartOLT API configuration
            rate_limiter: Shared call gate
        """
        self.config = smartolt_config
        self.rate_limiter = rate_limiter

        self.connection = SmartOltConnection(smartolt_config, rate_limiter)
        self.onus = SmartOltOnuOperations(self.connection)
        self.system = SmartOltSystemOperations(self.connection)

        logger.info("[OK] SmartOltAPIClient initialized")

    async def __aenter__(self) -> "SmartOltAPIClient":
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()

    # Facade methods delegating to operation classes

    async def get_all_onus_details(self, params: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        return await self.onus.get_all_onus_details(params)

    async def get_all_onus_gps_coordinates(self, params: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        return await self.onus.get_all_onus_gps_coordinates(params)

    async def get_onus_statuses(self, params: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        return await self.onus.get_onus_statuses(params)

    async def get_onu_details(self, external_id: str) -> Dict[str, Any]:
        return await self.onus.get_onu_details(external_id)

    async def get_onu_status(self, external_id: str) -> Dict[str, Any]:
        return await self.onus.get_onu_status(external_id)

    async def get_onu_signal(self, external_id: str) -> Dict[str, Any]:
        return await self.onus.get_onu_signal(external_id)

    async def get_olts_list(self) -> Dict[str, Any]:
        return await self.system.get_olts_list()

    async def test_connection(self) -> Dict[str, Any]:
        return await self.system.test_connection()

    async def close(self) -> None:
        """Close all connections and clean up resources."""
        await self.connection.close()
        logger.debug("SmartOltAPIClient closed")
