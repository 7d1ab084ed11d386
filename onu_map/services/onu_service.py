"""
OnuStatusMap - ONU Service

Orchestrates SmartOLT data into ONU records for the map:
- Cache check keyed by a canonical filter fingerprint
- On miss, gated upstream fetches (details, statuses, GPS, signal)
- Status classification and transition tracking against the last seen status
- ODB grouping and status statistics

Each bulk query follows the same path:
fingerprint -> cache hit? return : fetch -> merge -> classify -> diff -> record -> cache -> return
"""

import asyncio
import logging
from typing import Any, Dict, List, Mapping, Optional, Union

from onu_map.aggregators.odb_aggregator import OdbAggregator
from onu_map.api.errors import (
    InvalidCredentialsError,
    OnuMapError,
    OnuNotFoundError,
    UpstreamApplicationError,
)
from onu_map.cache.store import CacheStore
from onu_map.calculators.status_calculator import StatusCalculator
from onu_map.models.onu import (
    OdbGroup,
    OnuFilters,
    OnuRecord,
    OnuStatistics,
    OnuStatus,
)
from onu_map.services.status_classifier import classify_status
from onu_map.services.status_history import StatusHistory
from onu_map.utils.config import CacheConfig


logger = logging.getLogger(__name__)

FiltersLike = Union[OnuFilters, Mapping[str, Any], None]


class OnuService:
    """
    Aggregation service between the dashboard and the SmartOLT client.

    Identical concurrent requests are not coalesced: two requests that miss
    the cache at the same time both go upstream (through the same call gate).
    """

    def __init__(
        self,
        api_client,
        cache: CacheStore,
        cache_config: CacheConfig,
        history: Optional[StatusHistory] = None
    ):
        """
        Initialize the ONU service.

        Args:
            api_client: SmartOltAPIClient (or compatible async client)
            cache: Result cache store
            cache_config: TTLs per data class
            history: Transition log (default: new StatusHistory)
        """
        self.api = api_client
        self.cache = cache
        self.cache_config = cache_config
        self.history = history or StatusHistory()

    @staticmethod
    def _coerce_filters(filters: FiltersLike) -> OnuFilters:
        if isinstance(filters, OnuFilters):
            return filters
        return OnuFilters.from_mapping(filters)

    def _cached_records(self, key: str) -> Optional[List[OnuRecord]]:
        cached = self.cache.get(key)
        if cached is None:
            return None
        return [OnuRecord.from_dict(item) for item in cached]

    def _store_records(self, key: str, records: List[OnuRecord], ttl: int) -> None:
        self.cache.set(key, [record.to_dict() for record in records], ttl)

    @staticmethod
    def _response_list(response: Dict[str, Any], field: str, operation: str) -> List[Dict[str, Any]]:
        """Extract the list payload of a success envelope."""
        items = response.get(field)
        if not isinstance(items, list):
            raise UpstreamApplicationError(f"Invalid response from {operation}")
        return items

    @staticmethod
    def _status_lookup(response: Dict[str, Any]) -> Dict[str, Dict[str, Any]]:
        """Map unique_external_id -> status item from get_onus_statuses."""
        items = OnuService._response_list(response, "response", "get_onus_statuses")
        return {
            str(item.get("unique_external_id")): item
            for item in items
            if item.get("unique_external_id") is not None
        }

    def _track_status(self, record: OnuRecord) -> None:
        """Compare with the last seen status, record a transition, remember the new one."""
        status_key = f"status:{record.unique_external_id}"
        previous = self.cache.get(status_key)

        if previous and previous != record.status.value:
            try:
                old_status = OnuStatus(previous)
            except ValueError:
                logger.warning(f"[WARN] Ignoring unknown cached status {previous!r} for {record.unique_external_id}")
            else:
                self.history.track_change(record, record.status, old_status)

        self.cache.set(status_key, record.status.value, self.cache_config.status_memory_ttl)

    # ==================== Bulk Queries ====================

    async def get_all_onus_with_details(self, filters: FiltersLike = None) -> List[OnuRecord]:
        """
        All ONUs matching the filters with normalized status.

        Uses one "details" quota call and one unrestricted status call on a
        cache miss. Cached with the onu_details TTL.
        """
        filters = self._coerce_filters(filters)
        cache_key = f"all_onus:{filters.fingerprint()}"

        cached = self._cached_records(cache_key)
        if cached is not None:
            logger.info("[OK] Returning cached ONU data")
            return cached

        logger.info(f"[...] Fetching fresh ONU data from API ({filters.fingerprint()})")
        params = filters.to_params()

        try:
            details_response = await self.api.get_all_onus_details(params)
            onus = self._response_list(details_response, "response", "get_all_onus_details")
            logger.info(f"[OK] Retrieved {len(onus)} ONUs")

            status_lookup = self._status_lookup(await self.api.get_onus_statuses(params))
        except OnuMapError as error:
            logger.error(f"[ERROR] Error in get_all_onus_with_details: {error}")
            raise

        records: List[OnuRecord] = []
        for details in onus:
            external_id = str(details.get("unique_external_id"))
            status_item = status_lookup.get(external_id, {})
            raw_status = status_item.get("onu_status") or status_item.get("status")
            status = classify_status(raw_status, status_item.get("last_down_cause"))

            record = OnuRecord.from_smartolt(details, status, raw_status)
            self._track_status(record)
            records.append(record)

        self._store_records(cache_key, records, self.cache_config.onu_details_ttl)
        return records

    async def get_onus_with_gps(self, filters: FiltersLike = None) -> List[OnuRecord]:
        """
        ONUs with a usable location, merged from GPS coordinates and details.

        The detail list comes from get_all_onus_with_details (usually cached),
        so a cache miss here costs one "gps" quota call. Cached with the gps TTL.
        """
        filters = self._coerce_filters(filters)
        cache_key = f"onus_gps:{filters.fingerprint()}"

        cached = self._cached_records(cache_key)
        if cached is not None:
            logger.info("[OK] Returning cached GPS data")
            return cached

        try:
            details = await self.get_all_onus_with_details(filters)

            logger.info("[...] Fetching fresh GPS data from API")
            gps_response = await self.api.get_all_onus_gps_coordinates(filters.to_params())
            field = "onus" if "onus" in gps_response else "response"
            gps_onus = self._response_list(gps_response, field, "get_all_onus_gps_coordinates")
        except OnuMapError as error:
            logger.error(f"[ERROR] Error in get_onus_with_gps: {error}")
            raise

        logger.info(f"[OK] Retrieved GPS data for {len(gps_onus)} ONUs")
        details_by_id = {record.unique_external_id: record for record in details}

        located: List[OnuRecord] = []
        for gps in gps_onus:
            external_id = str(gps.get("unique_external_id"))
            base = details_by_id.get(external_id)
            if base is None:
                logger.debug(f"GPS entry {external_id} has no matching ONU details")
                base = OnuRecord(unique_external_id=external_id, name=gps.get("name"))

            record = base.with_location(gps.get("latitude"), gps.get("longitude"))
            if not record.has_location and base.has_location:
                record = base
            if record.has_location:
                located.append(record)

        skipped = len(gps_onus) - len(located)
        if skipped:
            logger.info(f"[INFO] Skipped {skipped} ONUs without usable coordinates")

        self._store_records(cache_key, located, self.cache_config.gps_ttl)
        return located

    async def get_onus_by_odb(self, filters: FiltersLike = None) -> List[OdbGroup]:
        """Located ONUs grouped by splitter box."""
        records = await self.get_onus_with_gps(filters)
        return OdbAggregator.group_by_odb(records)

    async def get_statistics(self, filters: FiltersLike = None) -> OnuStatistics:
        """Status statistics over the (not location-filtered) detail list."""
        records = await self.get_all_onus_with_details(filters)
        return StatusCalculator.compute_statistics(records)

    # ==================== Single ONU ====================

    async def _fetch_signal(self, external_id: str) -> Optional[Dict[str, Any]]:
        """Signal sub-record; failures are tolerated and reported as None."""
        try:
            response = await self.api.get_onu_signal(external_id)
        except OnuMapError as error:
            logger.warning(f"[WARN] Signal unavailable for ONU {external_id}: {error}")
            return None
        return {key: value for key, value in response.items() if key != "status"}

    async def get_onu_by_id(self, external_id: str) -> OnuRecord:
        """
        One ONU with fresh status and signal data.

        Cached with the onu_status TTL, since a detail view wants fresher
        status than the bulk map.

        Raises:
            OnuNotFoundError: Upstream reported a failure for the details call
            InvalidCredentialsError: Upstream rejected the token
        """
        cache_key = f"onu_detail:{external_id}"
        cached = self.cache.get(cache_key)
        if cached is not None:
            return OnuRecord.from_dict(cached)

        try:
            details_response = await self.api.get_onu_details(external_id)
        except InvalidCredentialsError:
            raise
        except UpstreamApplicationError as error:
            logger.error(f"[ERROR] Error getting ONU {external_id}: {error}")
            raise OnuNotFoundError(external_id, str(error)) from error

        details = details_response.get("onu_details")
        if not isinstance(details, dict) or not details:
            raise OnuNotFoundError(external_id, "no details returned")
        details = dict(details)
        details.setdefault("unique_external_id", external_id)

        status_response, signal = await asyncio.gather(
            self.api.get_onu_status(external_id),
            self._fetch_signal(external_id)
        )
        raw_status = status_response.get("onu_status")
        status = classify_status(raw_status, status_response.get("last_down_cause"))

        record = OnuRecord.from_smartolt(details, status, raw_status, signal)
        self.cache.set(cache_key, record.to_dict(), self.cache_config.onu_status_ttl)
        return record

    # ==================== Reference Data & Status ====================

    async def get_olts(self) -> List[Dict[str, Any]]:
        """OLT inventory for the filter dropdown; cached with the onu_details TTL."""
        cached = self.cache.get("olts")
        if cached is not None:
            return cached

        response = await self.api.get_olts_list()
        olts = self._response_list(response, "response", "get_olts")
        self.cache.set("olts", olts, self.cache_config.onu_details_ttl)
        return olts

    def get_status_history(self, limit: int = StatusHistory.DEFAULT_RECENT_LIMIT) -> Dict[str, List[dict]]:
        """Most recent LOS and Power Fail transitions, newest first."""
        return self.history.get_recent(limit)

    def get_quota_status(self) -> Dict[str, Any]:
        """Remaining hourly calls for the restricted endpoint classes."""
        return self.api.rate_limiter.get_status()
