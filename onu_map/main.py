"""
OnuStatusMap - Main Entry Point

Builds the service graph (config, call gate, SmartOLT client, cache, ONU
service, dashboard) and runs the dashboard server or a connection test.
"""

import argparse
import asyncio
import logging
import signal
import sys
from datetime import datetime, timezone

from onu_map.api.rate_limiter import RateLimiter
from onu_map.api.smartolt_client import SmartOltAPIClient
from onu_map.cache.store import create_cache_store
from onu_map.dashboard.api_routes import register_api_routes
from onu_map.dashboard.app import OnuMapDashboard
from onu_map.dashboard.data_provider import DashboardDataProvider
from onu_map.services.onu_service import OnuService
from onu_map.utils.config import Config
from onu_map.utils.logging_config import setup_logging


logger = logging.getLogger(__name__)


def parse_arguments() -> argparse.Namespace:
    """
    Parse command line arguments.

    Returns:
        Parsed argument namespace
    """
    parser = argparse.ArgumentParser(
        description="OnuStatusMap - SmartOLT ONU status map",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Run the dashboard with settings from .env
  python -m onu_map.main --serve

  # Run on all interfaces, port 3000
  python -m onu_map.main --serve --host 0.0.0.0 --port 3000

  # Check the SmartOLT base URL and API key
  python -m onu_map.main --test-connection
        """
    )

    mode_group = parser.add_mutually_exclusive_group(required=True)
    mode_group.add_argument(
        "--serve",
        action="store_true",
        help="Run the dashboard and JSON API"
    )
    mode_group.add_argument(
        "--test-connection",
        action="store_true",
        help="Test the SmartOLT connection and exit"
    )

    parser.add_argument("--host", type=str, help="Override DASH_HOST")
    parser.add_argument("--port", type=int, help="Override DASH_PORT")
    parser.add_argument(
        "--verbose",
        "-v",
        action="store_true",
        help="Enable verbose logging"
    )

    return parser.parse_args()


def build_dashboard(config: Config) -> OnuMapDashboard:
    """
    Wire the application and start the async event loop.

    Args:
        config: Application configuration

    Returns:
        Dashboard with JSON routes registered on its Flask server
    """
    if not config.smartolt.is_api_key_configured:
        logger.warning("[WARN] API_KEY is not configured; SmartOLT calls will be rejected")

    rate_limiter = RateLimiter(config.rate_limit)
    api_client = SmartOltAPIClient(config.smartolt, rate_limiter)
    cache = create_cache_store(config.cache)
    service = OnuService(api_client, cache, config.cache)

    provider = DashboardDataProvider(
        service,
        api_client=api_client,
        api_configured=config.smartolt.is_api_key_configured
    )
    provider.start()

    dashboard = OnuMapDashboard(data_provider=provider)
    register_api_routes(dashboard.server, provider, config)
    return dashboard


async def _test_connection_async(config: Config) -> dict:
    async with SmartOltAPIClient(config.smartolt, RateLimiter(config.rate_limit)) as client:
        return await client.test_connection()


def run_connection_test(config: Config) -> bool:
    """
    Test the SmartOLT connection.

    Returns:
        True if the API answered with a success envelope
    """
    logger.info(f"[...] Testing SmartOLT API at {config.smartolt.base_url}")
    logger.info(f"[INFO] API key: {config.smartolt.masked_api_key()}")

    result = asyncio.run(_test_connection_async(config))
    if result.get("success"):
        logger.info(f"[OK] {result.get('message')}")
        return True

    logger.error(f"[ERROR] Connection test failed: {result.get('message')}")
    return False


def run_server(config: Config) -> bool:
    """Run the dashboard until interrupted."""
    dashboard = build_dashboard(config)
    provider = dashboard.data_provider

    def graceful_shutdown(signum, frame):
        """Handle shutdown signals gracefully."""
        sig_name = signal.Signals(signum).name
        logger.info(f"[SHUTDOWN] Received signal {sig_name}, stopping event loop...")
        provider.stop()
        sys.exit(0)

    signal.signal(signal.SIGTERM, graceful_shutdown)
    signal.signal(signal.SIGINT, graceful_shutdown)

    logger.info(
        f"[INFO] Quotas: gps {config.rate_limit.gps_limit}/h, "
        f"details {config.rate_limit.details_limit}/h, "
        f"spacing {config.rate_limit.api_delay_ms} ms"
    )

    try:
        dashboard.run(host=config.server.host, port=config.server.port, debug=config.server.debug)
    finally:
        provider.stop()
    return True


def main() -> int:
    """
    Main entry point for OnuStatusMap.

    Returns:
        Exit code (0 for success, non-zero for failure)
    """
    args = parse_arguments()

    log_level = logging.DEBUG if args.verbose else None
    setup_logging(level=log_level)

    logger.info("=" * 60)
    logger.info("OnuStatusMap - Starting")
    logger.info(f"Timestamp: {datetime.now(timezone.utc).isoformat()}")
    logger.info("=" * 60)

    try:
        config = Config()
        logger.info("[OK] Configuration loaded")
    except ValueError as error:
        logger.error(f"[ERROR] Failed to load configuration: {error}")
        return 1

    if args.host:
        config.server.host = args.host
    if args.port:
        config.server.port = args.port

    try:
        if args.test_connection:
            success = run_connection_test(config)
        else:
            success = run_server(config)

    except KeyboardInterrupt:
        logger.warning("[WARN] Operation interrupted by user")
        return 130

    except Exception as error:
        logger.error(f"[ERROR] Operation failed: {error}", exc_info=True)
        return 1

    return 0 if success else 1


if __name__ == "__main__":
    sys.exit(main())
