"""
OnuStatusMap - ONU Status Classification

Maps SmartOLT status strings onto the four normalized statuses with an
ordered rule list. Exact rules are evaluated before substring rules, and
the first match wins; anything unmatched is Offline.

The "last down cause" reported by SmartOLT is only consulted when the
status string itself matches no rule.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Optional, Tuple

from onu_map.models.onu import OnuStatus


class MatchKind(Enum):
    EXACT = "exact"
    CONTAINS = "contains"


@dataclass(frozen=True)
class StatusRule:
    """Map a lowercase status string to a status when the pattern matches."""
    kind: MatchKind
    pattern: str
    status: OnuStatus

    def matches(self, value: str) -> bool:
        if self.kind is MatchKind.EXACT:
            return value == self.pattern
        return self.pattern in value


STATUS_RULES: Tuple[StatusRule, ...] = (
    StatusRule(MatchKind.EXACT, "online", OnuStatus.ONLINE),
    StatusRule(MatchKind.EXACT, "offline", OnuStatus.OFFLINE),
    StatusRule(MatchKind.CONTAINS, "los", OnuStatus.LOS),
    StatusRule(MatchKind.CONTAINS, "power", OnuStatus.POWER_FAIL),
    StatusRule(MatchKind.CONTAINS, "dying-gasp", OnuStatus.POWER_FAIL),
    StatusRule(MatchKind.CONTAINS, "dying gasp", OnuStatus.POWER_FAIL),
    StatusRule(MatchKind.CONTAINS, "dyinggasp", OnuStatus.POWER_FAIL),
)

DOWN_CAUSE_RULES: Tuple[StatusRule, ...] = (
    StatusRule(MatchKind.CONTAINS, "los", OnuStatus.LOS),
    StatusRule(MatchKind.CONTAINS, "signal", OnuStatus.LOS),
    StatusRule(MatchKind.CONTAINS, "power", OnuStatus.POWER_FAIL),
    StatusRule(MatchKind.CONTAINS, "dying", OnuStatus.POWER_FAIL),
)


def _first_match(value: Optional[str], rules: Tuple[StatusRule, ...]) -> Optional[OnuStatus]:
    if not value:
        return None
    normalized = value.strip().lower()
    for rule in rules:
        if rule.matches(normalized):
            return rule.status
    return None


def classify_status(raw_status: Optional[str], last_down_cause: Optional[str] = None) -> OnuStatus:
    """
    Normalize an upstream status string.

    Args:
        raw_status: Status as reported by SmartOLT (any case, may be None)
        last_down_cause: Optional last down cause, used only as a fallback

    Returns:
        One of Online, LOS, Power Fail, Offline
    """
    status = _first_match(raw_status, STATUS_RULES)
    if status is not None:
        return status
    return _first_match(last_down_cause, DOWN_CAUSE_RULES) or OnuStatus.OFFLINE
