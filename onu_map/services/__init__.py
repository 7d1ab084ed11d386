"""
OnuStatusMap - Services Package

Status classification, transition history and the ONU aggregation service.
"""

from onu_map.services.status_classifier import classify_status, STATUS_RULES, DOWN_CAUSE_RULES
from onu_map.services.status_history import StatusHistory
from onu_map.services.onu_service import OnuService

__all__ = [
    "classify_status",
    "STATUS_RULES",
    "DOWN_CAUSE_RULES",
    "StatusHistory",
    "OnuService"
]
