"""
OnuStatusMap - Utility modules

Configuration loading and logging setup.
"""
