"""
OnuStatusMap - Status Statistics Calculator

Reduces an aggregated ONU list into the counts shown on the dashboard
summary cards and breakdown tables.
"""

from typing import Dict, Iterable, Optional

from onu_map.models.onu import OnuRecord, OnuStatistics, StatusBreakdown


UNKNOWN_KEY = "Unknown"


class StatusCalculator:
    """Pure reductions over ONU records; no upstream access."""

    @staticmethod
    def _breakdown(table: Dict[str, StatusBreakdown], key: Optional[str], record: OnuRecord) -> None:
        name = key or UNKNOWN_KEY
        entry = table.get(name)
        if entry is None:
            entry = StatusBreakdown()
            table[name] = entry
        entry.add(record)

    @staticmethod
    def compute_statistics(records: Iterable[OnuRecord]) -> OnuStatistics:
        """
        Count ONUs by status, location availability, OLT, zone and ODB.

        Args:
            records: Aggregated ONU records

        Returns:
            OnuStatistics summary
        """
        stats = OnuStatistics()
        for record in records:
            stats.total += 1
            stats.by_status[record.status] += 1
            if record.has_location:
                stats.with_location += 1
            else:
                stats.without_location += 1

            StatusCalculator._breakdown(stats.by_olt, record.olt_name or record.olt_id, record)
            StatusCalculator._breakdown(stats.by_zone, record.zone_name, record)
            StatusCalculator._breakdown(stats.by_odb, record.odb_name, record)

        return stats
