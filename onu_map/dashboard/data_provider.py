"""
OnuStatusMap - Dashboard Data Provider

Bridges the synchronous Dash/Flask request threads and the async ONU service.
All upstream work runs on one asyncio event loop in a dedicated thread, so
the call gate state is only ever touched from that loop.
"""

import asyncio
import concurrent.futures
import logging
import threading
from typing import Any, Awaitable, Callable, Dict, List, Optional, TypeVar

from onu_map.api.errors import ErrorKind, OnuMapError, UpstreamTransportError
from onu_map.models.onu import OnuFilters
from onu_map.services.onu_service import OnuService


logger = logging.getLogger(__name__)

T = TypeVar("T")

# User-facing guidance per error kind
ERROR_MESSAGES: Dict[ErrorKind, str] = {
    ErrorKind.QUOTA_EXCEEDED: "Hourly SmartOLT quota reached.",
    ErrorKind.TRANSPORT: "SmartOLT API is unreachable or timed out. Check network connectivity and API_BASE_URL.",
    ErrorKind.APPLICATION: "SmartOLT API returned an error.",
    ErrorKind.INVALID_CREDENTIALS: "SmartOLT rejected the API key. Check API_KEY in the .env file.",
    ErrorKind.NOT_FOUND: "ONU not found."
}


def describe_error(error: Exception) -> str:
    """Translate a core error into a message for the dashboard."""
    if isinstance(error, OnuMapError):
        guidance = ERROR_MESSAGES.get(error.kind, "")
        if error.kind == ErrorKind.QUOTA_EXCEEDED:
            wait_minutes = getattr(error, "wait_minutes", None)
            return f"{guidance} Try again in {wait_minutes} minutes."
        return f"{guidance} ({error})" if guidance else str(error)
    return f"Unexpected error: {error}"


def _run_async_event_loop(loop: asyncio.AbstractEventLoop) -> None:
    """
    Run the asyncio event loop in a dedicated thread.

    This allows the async SmartOLT client to run alongside the synchronous
    Dash/Flask application.
    """
    asyncio.set_event_loop(loop)
    try:
        loop.run_forever()
    finally:
        pending = asyncio.all_tasks(loop)
        for task in pending:
            task.cancel()
        loop.run_until_complete(asyncio.gather(*pending, return_exceptions=True))
        loop.close()


class DashboardDataProvider:
    """
    Data provider for the ONU map dashboard and JSON API.

    Responsibilities:
    - Own the background event loop thread
    - Submit ONU service coroutines and wait with a bounded timeout
    - Shape service results for the dashboard callbacks
    """

    # Several gated calls may queue behind the spacing clock
    REQUEST_TIMEOUT_SECONDS = 180

    def __init__(self, service: OnuService, api_client=None, api_configured: bool = True):
        """
        Initialize the data provider.

        Args:
            service: ONU aggregation service
            api_client: SmartOLT client (closed on stop)
            api_configured: False when no real API key is set
        """
        self.service = service
        self.api_client = api_client
        self.api_configured = api_configured
        self._loop: Optional[asyncio.AbstractEventLoop] = None
        self._thread: Optional[threading.Thread] = None

    @property
    def is_running(self) -> bool:
        return self._loop is not None and self._loop.is_running()

    def start(self) -> None:
        """Start the background event loop thread."""
        if self._thread and self._thread.is_alive():
            logger.warning("[WARN] Data provider loop already running")
            return

        self._loop = asyncio.new_event_loop()
        self._thread = threading.Thread(
            target=_run_async_event_loop,
            args=(self._loop,),
            daemon=True,
            name="onu-map-async-loop"
        )
        started = threading.Event()
        self._loop.call_soon_threadsafe(started.set)
        self._thread.start()
        started.wait(timeout=5)
        logger.info("[OK] Async event loop started for SmartOLT calls")

    def stop(self) -> None:
        """Close the API client and stop the event loop."""
        if self._loop is None:
            return

        if self.api_client is not None and self._loop.is_running():
            try:
                self.run(self.api_client.close(), timeout=5)
            except Exception as error:
                logger.warning(f"[WARN] Failed to close API client: {error}")

        if self._loop.is_running():
            self._loop.call_soon_threadsafe(self._loop.stop)
        if self._thread and self._thread.is_alive():
            self._thread.join(timeout=5)

        self._loop = None
        self._thread = None
        logger.info("[OK] Async event loop stopped")

    def run(self, coroutine: Awaitable[T], timeout: Optional[float] = None) -> T:
        """
        Run a coroutine on the background loop and wait for its result.

        Raises:
            RuntimeError: If start() has not been called
            UpstreamTransportError: If the result does not arrive in time
        """
        if self._loop is None:
            raise RuntimeError("DashboardDataProvider.start() must be called first")

        future = asyncio.run_coroutine_threadsafe(coroutine, self._loop)
        wait = timeout or self.REQUEST_TIMEOUT_SECONDS
        try:
            return future.result(wait)
        except concurrent.futures.TimeoutError as error:
            future.cancel()
            raise UpstreamTransportError(
                f"Timed out after {wait:.0f}s waiting for SmartOLT data"
            ) from error

    # ==================== Service Pass-through ====================

    def list_onus(self, filters: Optional[OnuFilters] = None) -> List[dict]:
        return [record.to_dict() for record in self.run(self.service.get_all_onus_with_details(filters))]

    def list_onus_with_gps(self, filters: Optional[OnuFilters] = None) -> List[dict]:
        return [record.to_dict() for record in self.run(self.service.get_onus_with_gps(filters))]

    def get_odb_groups(self, filters: Optional[OnuFilters] = None) -> List[dict]:
        return [group.to_dict() for group in self.run(self.service.get_onus_by_odb(filters))]

    def get_onu(self, external_id: str) -> dict:
        return self.run(self.service.get_onu_by_id(external_id)).to_dict()

    def get_statistics(self, filters: Optional[OnuFilters] = None) -> dict:
        return self.run(self.service.get_statistics(filters)).to_dict()

    def get_olts(self) -> List[dict]:
        return self.run(self.service.get_olts())

    def test_connection(self) -> dict:
        return self.run(self.api_client.test_connection())

    def call_on_loop(self, func: Callable[[], T]) -> T:
        """Run a synchronous call on the loop thread; history and quota state belong to it."""
        async def call():
            return func()
        return self.run(call())

    def get_history(self) -> Dict[str, List[dict]]:
        return self.call_on_loop(self.service.get_status_history)

    def get_quota_status(self) -> Dict[str, Any]:
        return self.call_on_loop(self.service.get_quota_status)

    def get_cache_stats(self) -> Dict[str, Any]:
        return self.service.cache.get_stats()

    # ==================== Dashboard Views ====================

    def get_olt_options(self) -> List[Dict[str, str]]:
        """Dropdown options for the OLT filter; empty when unavailable."""
        try:
            olts = self.get_olts()
        except OnuMapError as error:
            logger.warning(f"[WARN] Could not load OLT list: {error}")
            return []
        options = []
        for olt in olts:
            if olt.get("id") is None:
                continue
            label = str(olt.get("name") or olt.get("id"))
            if olt.get("ip"):
                label = f"{label} ({olt['ip']})"
            options.append({"label": label, "value": str(olt["id"])})
        return options

    def get_map_data(self, filters: Optional[OnuFilters] = None) -> Dict[str, Any]:
        """
        Everything the map page needs for one filter set.

        Returns:
            Dict with groups (located ODB groups), statistics, quota and
            error (user-facing message or None). On failure the remaining
            keys hold empty values so the page still renders.
        """
        data: Dict[str, Any] = {
            "groups": [],
            "statistics": None,
            "quota": {},
            "error": None
        }

        try:
            data["statistics"] = self.get_statistics(filters)
            data["groups"] = self.get_odb_groups(filters)
        except OnuMapError as error:
            logger.error(f"[ERROR] Map data unavailable: {error}")
            data["error"] = describe_error(error)

        data["quota"] = self.get_quota_status()
        return data
