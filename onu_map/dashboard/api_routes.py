"""
OnuStatusMap - JSON API Routes

Registers the REST endpoints on the Flask server that backs the Dash app.
Every response carries a "status" flag; failures add "error" and
"error_kind" so clients can tell a spent quota from an unreachable API.
"""

import logging
from typing import Any, Dict, Optional, Tuple

from flask import Flask, jsonify, request

from onu_map.api.errors import ErrorKind, OnuMapError
from onu_map.models.onu import OnuFilters
from onu_map.utils.config import Config


logger = logging.getLogger(__name__)

HTTP_STATUS_BY_KIND: Dict[ErrorKind, int] = {
    ErrorKind.QUOTA_EXCEEDED: 429,
    ErrorKind.NOT_FOUND: 404,
    ErrorKind.INVALID_CREDENTIALS: 401,
    ErrorKind.TRANSPORT: 502,
    ErrorKind.APPLICATION: 500
}


def error_response(error: Exception) -> Tuple[Any, int]:
    """JSON body and HTTP status for a failed request."""
    if isinstance(error, OnuMapError):
        body = {"status": False}
        body.update(error.to_dict())
        return jsonify(body), HTTP_STATUS_BY_KIND.get(error.kind, 500)

    logger.error(f"[ERROR] Unhandled API error: {error}", exc_info=True)
    return jsonify({"status": False, "error": str(error), "error_kind": "internal"}), 500


def _filters_from_request() -> OnuFilters:
    return OnuFilters.from_mapping(request.args)


def register_api_routes(server: Flask, provider, config: Optional[Config] = None) -> None:
    """
    Attach the JSON API to a Flask server.

    Args:
        server: Flask app (dash.Dash(...).server)
        provider: DashboardDataProvider
        config: Application configuration; enables /api/debug/config
    """

    @server.errorhandler(OnuMapError)
    def handle_onu_map_error(error):
        return error_response(error)

    @server.route("/api/onus", methods=["GET"])
    def list_onus():
        onus = provider.list_onus(_filters_from_request())
        return jsonify({"status": True, "count": len(onus), "onus": onus})

    @server.route("/api/onus/gps", methods=["GET"])
    def list_onus_with_gps():
        onus = provider.list_onus_with_gps(_filters_from_request())
        return jsonify({"status": True, "count": len(onus), "onus": onus})

    @server.route("/api/onus/by-odb", methods=["GET"])
    def list_onus_by_odb():
        groups = provider.get_odb_groups(_filters_from_request())
        return jsonify({"status": True, "count": len(groups), "odbs": groups})

    @server.route("/api/onus/<external_id>", methods=["GET"])
    def get_onu(external_id: str):
        return jsonify({"status": True, "onu": provider.get_onu(external_id)})

    @server.route("/api/statistics", methods=["GET"])
    def get_statistics():
        stats = provider.get_statistics(_filters_from_request())
        return jsonify({"status": True, "statistics": stats})

    @server.route("/api/history", methods=["GET"])
    def get_history():
        history = provider.get_history()
        return jsonify({"status": True, **history})

    @server.route("/api/olts", methods=["GET"])
    def list_olts():
        olts = provider.get_olts()
        return jsonify({"status": True, "count": len(olts), "olts": olts})

    @server.route("/api/rate-limit-stats", methods=["GET"])
    def rate_limit_stats():
        return jsonify({"status": True, "rate_limits": provider.get_quota_status()})

    @server.route("/api/test-connection", methods=["GET"])
    def test_connection():
        result = provider.test_connection()
        code = 200 if result.get("success") else 502
        return jsonify({"status": bool(result.get("success")), **result}), code

    if config is not None:
        @server.route("/api/debug/config", methods=["GET"])
        def debug_config():
            return jsonify({"status": True, "config": config.diagnostics()})

    @server.route("/health", methods=["GET"])
    def health():
        return jsonify({
            "status": True,
            "service": "onu-status-map",
            "api_configured": provider.api_configured,
            "event_loop_running": provider.is_running,
            "cache": provider.get_cache_stats(),
            "rate_limits": provider.get_quota_status()
        })

    logger.info("[OK] JSON API routes registered")
