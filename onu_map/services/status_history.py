"""
OnuStatusMap - Status Transition History

Keeps the most recent transitions into LOS and Power Fail, newest first.
Each log is bounded; the oldest event is evicted when a new one arrives
at capacity. History is in-memory only.
"""

import logging
from collections import deque
from datetime import datetime
from typing import Deque, Dict, List, Optional

from onu_map.models.onu import OnuRecord, OnuStatus, StatusChangeEvent


logger = logging.getLogger(__name__)


class StatusHistory:
    """Two bounded newest-first logs of status change events."""

    MAX_EVENTS = 50
    DEFAULT_RECENT_LIMIT = 20

    def __init__(self, max_events: int = MAX_EVENTS):
        self.max_events = max_events
        self._logs: Dict[OnuStatus, Deque[StatusChangeEvent]] = {
            OnuStatus.LOS: deque(maxlen=max_events),
            OnuStatus.POWER_FAIL: deque(maxlen=max_events)
        }

    @property
    def recent_los(self) -> List[StatusChangeEvent]:
        return list(self._logs[OnuStatus.LOS])

    @property
    def recent_power_fail(self) -> List[StatusChangeEvent]:
        return list(self._logs[OnuStatus.POWER_FAIL])

    def track_change(
        self,
        record: OnuRecord,
        new_status: OnuStatus,
        old_status: OnuStatus,
        timestamp: Optional[datetime] = None
    ) -> Optional[StatusChangeEvent]:
        """
        Record a transition if the status changed.

        Only transitions landing on LOS or Power Fail are stored; other
        changes are logged and dropped.

        Returns:
            The stored event, or None when nothing was stored
        """
        new_status = OnuStatus(new_status)
        old_status = OnuStatus(old_status)
        if new_status == old_status:
            return None

        logger.info(
            f"Status change tracked: {record.unique_external_id} "
            f"{old_status.value} -> {new_status.value}"
        )

        log = self._logs.get(new_status)
        if log is None:
            return None

        event = StatusChangeEvent.from_record(record, old_status, new_status, timestamp)
        log.appendleft(event)
        return event

    def get_recent(self, limit: int = DEFAULT_RECENT_LIMIT) -> Dict[str, List[dict]]:
        """Newest events of each log as dictionaries."""
        return {
            "recent_los": [event.to_dict() for event in list(self._logs[OnuStatus.LOS])[:limit]],
            "recent_power_fail": [
                event.to_dict() for event in list(self._logs[OnuStatus.POWER_FAIL])[:limit]
            ]
        }
