"""
OnuStatusMap - Fiber ONU Status Map

This package provides a rate-limited, caching proxy in front of the SmartOLT
API and a map dashboard visualizing ONU status grouped by splitter box (ODB).
"""

__version__ = "26.10.18"
__author__ = "Network Operations"
