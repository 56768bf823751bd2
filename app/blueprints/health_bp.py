"""
Probe endpoints, reachable without a bearer token and exempt from rate limits.

    GET /api/v1/health         app name, nothing else touched
    GET /api/v1/health/ready   readiness for the load balancer
    GET /api/v1/health/live    per-dependency report; 503 when the database is down

Storage and Graph are reported but never degrade the overall status: the hub
keeps serving tasks when attachments or calendar sync are unavailable.
"""

import logging
import os
import time

from flask import Blueprint, current_app, jsonify
from sqlalchemy.exc import SQLAlchemyError

from app.integrations.graph_gateway import graph_gateway
from app.models import db

logger = logging.getLogger(__name__)

APP_NAME = "Nexus Project Hub"

health_bp = Blueprint("health_bp", __name__, url_prefix="/api/v1/health")


def _check_database() -> dict:
    started = time.perf_counter()
    try:
        db.session.execute(db.text("SELECT 1"))
    except SQLAlchemyError as exc:
        db.session.rollback()
        logger.error("Liveness probe: database unreachable: %s", exc)
        return {"status": "error", "detail": str(exc)}
    return {"status": "ok", "latency_ms": round((time.perf_counter() - started) * 1000, 1)}


def _check_storage() -> dict:
    provider = (current_app.config.get("STORAGE_PROVIDER") or "local").lower()
    if provider != "local":
        # Drive-backed storage lives behind Graph; its health shows up there
        return {"status": "external", "provider": provider}
    folder = current_app.config.get("UPLOAD_FOLDER") or ""
    usable = os.path.isdir(folder) and os.access(folder, os.W_OK)
    return {"status": "ok" if usable else "not_ready", "provider": provider}


def _check_graph() -> dict:
    return {"status": "configured" if graph_gateway.is_configured() else "not_configured"}


@health_bp.route("", methods=["GET"])
def health():
    return jsonify({"status": "ok", "app": APP_NAME}), 200


@health_bp.route("/ready", methods=["GET"])
def ready():
    return jsonify({"status": "ok"}), 200


@health_bp.route("/live", methods=["GET"])
def live():
    checks = {
        "database": _check_database(),
        "storage": _check_storage(),
        "graph": _check_graph(),
    }
    healthy = checks["database"]["status"] == "ok"
    return jsonify({
        "status": "healthy" if healthy else "degraded",
        "app": APP_NAME,
        "checks": checks,
    }), 200 if healthy else 503
