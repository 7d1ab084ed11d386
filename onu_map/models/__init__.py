"""
OnuStatusMap - Data Models Package

Dataclass models for ONU records, filters, status events and summaries.
"""

from onu_map.models.onu import (
    OnuStatus,
    STATUS_COLORS,
    status_color,
    parse_location,
    OnuFilters,
    OnuRecord,
    StatusChangeEvent,
    OdbGroup,
    StatusBreakdown,
    OnuStatistics
)

__all__ = [
    "OnuStatus",
    "STATUS_COLORS",
    "status_color",
    "parse_location",
    "OnuFilters",
    "OnuRecord",
    "StatusChangeEvent",
    "OdbGroup",
    "StatusBreakdown",
    "OnuStatistics"
]
