"""Health blueprint — /api/health (unauthenticated)."""

from flask import Blueprint, jsonify

from taskboard.realtime.presence import presence

health_bp = Blueprint("health", __name__, url_prefix="/api")


@health_bp.route("/health")
def health():
    return jsonify({"status": "ok", **presence.stats()})
