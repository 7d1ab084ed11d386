"""
OnuStatusMap - ONU Data Models

Records built from SmartOLT responses on every aggregation pass.
Records are never mutated after construction; a refresh builds new ones.
"""

import math
from dataclasses import dataclass, field, fields, replace
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Mapping, Optional, Tuple
from urllib.parse import urlencode


class OnuStatus(str, Enum):
    """Normalized ONU status."""
    ONLINE = "Online"
    LOS = "LOS"
    POWER_FAIL = "Power Fail"
    OFFLINE = "Offline"


STATUS_COLORS: Dict[OnuStatus, str] = {
    OnuStatus.ONLINE: "#28a745",      # Green
    OnuStatus.LOS: "#dc3545",         # Red
    OnuStatus.POWER_FAIL: "#ffc107",  # Yellow
    OnuStatus.OFFLINE: "#6c757d"      # Gray
}


def status_color(status: OnuStatus) -> str:
    """Display color for a normalized status."""
    return STATUS_COLORS[OnuStatus(status)]


def parse_coordinate(value: Any) -> Optional[float]:
    """Parse one coordinate; None for missing, unparseable or non-finite input."""
    if value is None or isinstance(value, bool):
        return None
    try:
        number = float(value)
    except (TypeError, ValueError):
        return None
    if not math.isfinite(number):
        return None
    return number


def parse_location(latitude: Any, longitude: Any) -> Tuple[Optional[float], Optional[float]]:
    """
    Parse a coordinate pair.

    SmartOLT reports unset locations as 0,0; that pair and any pair with a
    missing or invalid half yield (None, None).
    """
    lat = parse_coordinate(latitude)
    lon = parse_coordinate(longitude)
    if lat is None or lon is None:
        return None, None
    if lat == 0 and lon == 0:
        return None, None
    if not (-90 <= lat <= 90 and -180 <= lon <= 180):
        return None, None
    return lat, lon


@dataclass(frozen=True)
class OnuFilters:
    """
    Filter set for bulk ONU queries.

    Every field is optional; None imposes no constraint. The same field names
    are used as SmartOLT query parameters.
    """
    olt_id: Optional[str] = None
    board: Optional[str] = None
    port: Optional[str] = None
    zone: Optional[str] = None

    def __post_init__(self):
        # Normalize to trimmed strings so "1" and 1 fingerprint the same
        for item in fields(self):
            value = getattr(self, item.name)
            if value is None:
                continue
            text = str(value).strip()
            object.__setattr__(self, item.name, text or None)

    @classmethod
    def from_mapping(cls, data: Optional[Mapping[str, Any]]) -> "OnuFilters":
        """Build filters from a query-string style mapping, ignoring unknown keys."""
        data = data or {}
        return cls(
            olt_id=data.get("olt_id"),
            board=data.get("board"),
            port=data.get("port"),
            zone=data.get("zone")
        )

    def to_params(self) -> Dict[str, str]:
        """Query parameters for SmartOLT, set fields only."""
        return {
            item.name: getattr(self, item.name)
            for item in fields(self)
            if getattr(self, item.name) is not None
        }

    def fingerprint(self) -> str:
        """Canonical key-ordered serialization used in cache keys."""
        params = self.to_params()
        if not params:
            return "all"
        # Escaped so a value holding "&" or "=" cannot mimic another filter set
        return urlencode(sorted(params.items()))


@dataclass(frozen=True)
class OnuRecord:
    """
    One ONU merged from detail, status and location data.

    Primary Key: unique_external_id (SmartOLT external id)
    """
    unique_external_id: str
    name: Optional[str] = None
    sn: Optional[str] = None
    olt_id: Optional[str] = None
    olt_name: Optional[str] = None
    board: Optional[str] = None
    port: Optional[str] = None
    onu: Optional[str] = None
    zone_name: Optional[str] = None
    odb_name: Optional[str] = None
    latitude: Optional[float] = None
    longitude: Optional[float] = None
    raw_status: Optional[str] = None
    status: OnuStatus = OnuStatus.OFFLINE
    signal: Optional[Dict[str, Any]] = None
    # Vendor fields not modeled above, passed through untouched
    attributes: Dict[str, Any] = field(default_factory=dict)

    @property
    def status_color(self) -> str:
        return status_color(self.status)

    @property
    def has_location(self) -> bool:
        return self.latitude is not None and self.longitude is not None

    @property
    def is_online(self) -> bool:
        return self.status == OnuStatus.ONLINE

    def with_location(self, latitude: Any, longitude: Any) -> "OnuRecord":
        """Copy with a new coordinate pair (validated)."""
        lat, lon = parse_location(latitude, longitude)
        return replace(self, latitude=lat, longitude=lon)

    @classmethod
    def from_smartolt(
        cls,
        details: Mapping[str, Any],
        status: OnuStatus,
        raw_status: Optional[str] = None,
        signal: Optional[Dict[str, Any]] = None
    ) -> "OnuRecord":
        """
        Create OnuRecord from a SmartOLT ONU details object.

        Args:
            details: ONU object from get_all_onus_details / get_onu_details
            status: Normalized status
            raw_status: Status string as reported upstream
            signal: Optional signal sub-record

        Returns:
            OnuRecord instance
        """
        known = {item.name for item in fields(cls)}
        lat, lon = parse_location(details.get("latitude"), details.get("longitude"))

        def text(key: str) -> Optional[str]:
            value = details.get(key)
            return None if value is None or value == "" else str(value)

        return cls(
            unique_external_id=str(details.get("unique_external_id", "")),
            name=text("name"),
            sn=text("sn"),
            olt_id=text("olt_id"),
            olt_name=text("olt_name"),
            board=text("board"),
            port=text("port"),
            onu=text("onu"),
            zone_name=text("zone_name"),
            odb_name=text("odb_name"),
            latitude=lat,
            longitude=lon,
            raw_status=raw_status,
            status=status,
            signal=signal,
            attributes={k: v for k, v in details.items() if k not in known}
        )

    def to_dict(self) -> dict:
        """Convert to dictionary for JSON responses and cache storage."""
        data = dict(self.attributes)
        data.update({
            "unique_external_id": self.unique_external_id,
            "name": self.name,
            "sn": self.sn,
            "olt_id": self.olt_id,
            "olt_name": self.olt_name,
            "board": self.board,
            "port": self.port,
            "onu": self.onu,
            "zone_name": self.zone_name,
            "odb_name": self.odb_name,
            "latitude": self.latitude,
            "longitude": self.longitude,
            "raw_status": self.raw_status,
            "status": self.status.value,
            "status_color": self.status_color,
            "signal": self.signal
        })
        return data

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "OnuRecord":
        """Rebuild a record from to_dict() output."""
        details = {k: v for k, v in data.items() if k not in ("status", "status_color", "raw_status", "signal")}
        return cls.from_smartolt(
            details,
            status=OnuStatus(data.get("status", OnuStatus.OFFLINE.value)),
            raw_status=data.get("raw_status"),
            signal=data.get("signal")
        )


@dataclass(frozen=True)
class StatusChangeEvent:
    """One observed change of an ONU's normalized status."""
    unique_external_id: str
    name: str
    odb_name: str
    board: Optional[str]
    port: Optional[str]
    onu: Optional[str]
    old_status: OnuStatus
    new_status: OnuStatus
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    @classmethod
    def from_record(
        cls,
        record: OnuRecord,
        old_status: OnuStatus,
        new_status: OnuStatus,
        timestamp: Optional[datetime] = None
    ) -> "StatusChangeEvent":
        return cls(
            unique_external_id=record.unique_external_id,
            name=record.name or "Unknown",
            odb_name=record.odb_name or "Unknown",
            board=record.board,
            port=record.port,
            onu=record.onu,
            old_status=OnuStatus(old_status),
            new_status=OnuStatus(new_status),
            timestamp=timestamp or datetime.now(timezone.utc)
        )

    def to_dict(self) -> dict:
        return {
            "unique_external_id": self.unique_external_id,
            "name": self.name,
            "odb_name": self.odb_name,
            "board": self.board,
            "port": self.port,
            "onu": self.onu,
            "old_status": self.old_status.value,
            "new_status": self.new_status.value,
            "timestamp": self.timestamp.isoformat()
        }


@dataclass
class OdbGroup:
    """ONUs sharing one splitter box (ODB)."""
    odb_name: str
    onus: List[OnuRecord] = field(default_factory=list)

    @property
    def located_onus(self) -> List[OnuRecord]:
        return [onu for onu in self.onus if onu.has_location]

    @property
    def centroid(self) -> Optional[Tuple[float, float]]:
        """Mean latitude/longitude of members with a location, None if none."""
        located = self.located_onus
        if not located:
            return None
        lat = sum(onu.latitude for onu in located) / len(located)
        lon = sum(onu.longitude for onu in located) / len(located)
        return (lat, lon)

    def to_dict(self) -> dict:
        centroid = self.centroid
        return {
            "odb_name": self.odb_name,
            "onu_count": len(self.onus),
            "odb_coordinates": (
                {"latitude": centroid[0], "longitude": centroid[1]} if centroid else None
            ),
            "onus": [onu.to_dict() for onu in self.onus]
        }


@dataclass
class StatusBreakdown:
    """Online / not-online counts for one OLT, zone or ODB."""
    total: int = 0
    online: int = 0
    offline: int = 0

    def add(self, record: OnuRecord) -> None:
        self.total += 1
        if record.is_online:
            self.online += 1
        else:
            self.offline += 1

    def to_dict(self) -> dict:
        return {"total": self.total, "online": self.online, "offline": self.offline}


@dataclass
class OnuStatistics:
    """Summary counts over one aggregated ONU list."""
    total: int = 0
    by_status: Dict[OnuStatus, int] = field(
        default_factory=lambda: {status: 0 for status in OnuStatus}
    )
    with_location: int = 0
    without_location: int = 0
    by_olt: Dict[str, StatusBreakdown] = field(default_factory=dict)
    by_zone: Dict[str, StatusBreakdown] = field(default_factory=dict)
    by_odb: Dict[str, StatusBreakdown] = field(default_factory=dict)

    def to_dict(self) -> dict:
        return {
            "total": self.total,
            "online": self.by_status[OnuStatus.ONLINE],
            "los": self.by_status[OnuStatus.LOS],
            "power_fail": self.by_status[OnuStatus.POWER_FAIL],
            "offline": self.by_status[OnuStatus.OFFLINE],
            "with_location": self.with_location,
            "without_location": self.without_location,
            "by_olt": {key: value.to_dict() for key, value in self.by_olt.items()},
            "by_zone": {key: value.to_dict() for key, value in self.by_zone.items()},
            "by_odb": {key: value.to_dict() for key, value in self.by_odb.items()}
        }
