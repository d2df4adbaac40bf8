"""
HTTP surface of FloodGuard (Flask).

Routes:
- POST /onebot       OneBot v11 reverse-HTTP event intake
- GET  /api/config   Current settings
- POST /api/config   Partial settings update (persisted)
- GET  /api/stats    Store size and classification counters
- GET  /api/health   Liveness probe
"""

from __future__ import annotations

import secrets
from typing import TYPE_CHECKING

from flask import Flask, jsonify, request

from floodguard.utils.logging import get_logger, set_debug

if TYPE_CHECKING:
    from floodguard.guard import FloodGuard

logger = get_logger(__name__)


def create_app(guard: FloodGuard) -> Flask:
    """
    Build the Flask application bound to a guard instance.

    Args:
        guard: The running FloodGuard whose components the routes use

    Returns:
        Flask: Configured application
    """
    app = Flask(__name__)
    api_token = guard.config.api_token

    @app.before_request
    def check_api_token():
        """Require the bearer token on /api/* when one is configured."""
        if not api_token or not request.path.startswith("/api/") or request.path == "/api/health":
            return None
        header = request.headers.get("Authorization", "")
        supplied = header[7:] if header.startswith("Bearer ") else ""
        if not secrets.compare_digest(supplied, api_token):
            logger.warning("Rejected %s %s: bad API token", request.method, request.path)
            return jsonify({"code": -1, "message": "unauthorized"}), 401
        return None

    @app.route("/onebot", methods=["POST"])
    def onebot_event():
        event = request.get_json(silent=True)
        if not isinstance(event, dict):
            return jsonify({"code": -1, "message": "expected a JSON object"}), 400
        try:
            guard.handler.handle_event(event)
        except Exception as e:
            logger.exception("Error handling event: %s", e)
        # OneBot treats any 2xx without a body as "no quick operation"
        return "", 204

    @app.route("/api/config", methods=["GET"])
    def get_config():
        return jsonify({"code": 0, "data": guard.settings.current.to_dict()})

    @app.route("/api/config", methods=["POST"])
    def update_config():
        body = request.get_json(silent=True)
        if not isinstance(body, dict):
            return jsonify({"code": -1, "message": "expected a JSON object"}), 400
        try:
            settings = guard.settings.update(body)
        except ValueError as e:
            return jsonify({"code": -1, "message": str(e)}), 400
        guard.settings.save()
        set_debug(settings.debug)
        return jsonify({"code": 0, "message": "config updated", "data": settings.to_dict()})

    @app.route("/api/stats", methods=["GET"])
    def get_stats():
        stats = guard.store.stats()
        return jsonify({
            "code": 0,
            "data": {
                "cacheGroups": stats.groups,
                "cacheUsers": stats.users,
                "cacheRecords": stats.records,
                "processed": guard.handler.processed,
                "flagged": guard.handler.flagged,
                "uptime": round(guard.uptime),
            },
        })

    @app.route("/api/health", methods=["GET"])
    def health():
        return jsonify({"code": 0, "data": {"scheduler": guard.scheduler.running}})

    return app
