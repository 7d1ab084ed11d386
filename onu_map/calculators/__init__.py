"""
OnuStatusMap - Calculators Package

Status statistics over aggregated ONU lists.
"""

from onu_map.calculators.status_calculator import StatusCalculator

__all__ = [
    "StatusCalculator"
]
