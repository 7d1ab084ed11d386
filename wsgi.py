"""
WSGI entry point for the OnuStatusMap dashboard.

This module creates the Dash application and exposes its Flask server
for use with production WSGI servers like Gunicorn.

Usage with Gunicorn:
    gunicorn -c gunicorn_config.py wsgi:server
"""

import logging

from onu_map.main import build_dashboard
from onu_map.utils.config import Config
from onu_map.utils.logging_config import setup_logging


logger = logging.getLogger(__name__)

# Global instance (one per worker process)
_dashboard = None


def create_app():
    """
    Create and configure the Dash application.

    Returns:
        Flask server instance (for WSGI)
    """
    global _dashboard

    setup_logging()

    logger.info("=" * 60)
    logger.info("OnuStatusMap - Dashboard (Gunicorn)")
    logger.info("=" * 60)

    _dashboard = build_dashboard(Config())
    logger.info("[OK] Dashboard ready")
    return _dashboard.server


server = create_app()
