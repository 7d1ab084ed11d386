"""
OnuStatusMap - Aggregators Package

Topology grouping of ONU records.
"""

from onu_map.aggregators.odb_aggregator import OdbAggregator, UNKNOWN_ODB

__all__ = [
    "OdbAggregator",
    "UNKNOWN_ODB"
]
