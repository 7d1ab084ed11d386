"""
OnuStatusMap - ODB Aggregator

Groups ONUs by their splitter box (ODB) for the map's ODB-to-ONU lines.
"""

import logging
from typing import Dict, Iterable, List

from onu_map.models.onu import OdbGroup, OnuRecord


logger = logging.getLogger(__name__)

# Group name for ONUs without an ODB assignment
UNKNOWN_ODB = "Unknown"


class OdbAggregator:
    """Partition ONU records by ODB name."""

    @staticmethod
    def group_by_odb(records: Iterable[OnuRecord]) -> List[OdbGroup]:
        """
        Group records by odb_name, preserving first-seen order.

        Args:
            records: ONU records (any order)

        Returns:
            One OdbGroup per distinct ODB name
        """
        groups: Dict[str, OdbGroup] = {}
        for record in records:
            odb_name = record.odb_name or UNKNOWN_ODB
            group = groups.get(odb_name)
            if group is None:
                group = OdbGroup(odb_name=odb_name)
                groups[odb_name] = group
            group.onus.append(record)

        logger.debug(f"Grouped ONUs into {len(groups)} ODBs")
        return list(groups.values())
