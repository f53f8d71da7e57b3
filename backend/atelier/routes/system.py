# Overview: Flask API routes for system health and version.

"""
System health and version endpoints.

Health reports record-store connectivity so deploy probes can tell a
broken database from a broken process.
"""

import os
import time
from flask import Blueprint, current_app, jsonify
from ..extensions import db
from ..models import Order, SessionToken, User
from atelier.time_utils import to_utc_z, utcnow

system_bp = Blueprint("system", __name__)


def check_database_health() -> dict:
    start_time = time.time()
    try:
        user_count = db.session.query(User).count()
        order_count = db.session.query(Order).count()
        active_sessions = db.session.query(SessionToken).filter_by(is_revoked=False).count()

        elapsed_ms = (time.time() - start_time) * 1000
        return {
            "status": "healthy",
            "latency_ms": round(elapsed_ms, 2),
            "details": {
                "users": user_count,
                "orders": order_count,
                "active_sessions": active_sessions,
            },
        }
    except Exception:
        elapsed_ms = (time.time() - start_time) * 1000
        current_app.logger.exception("Database health check failed")
        db.session.rollback()
        return {
            "status": "unhealthy",
            "latency_ms": round(elapsed_ms, 2),
            "error": "Database error",
        }


@system_bp.get("/health")
def health():
    database = check_database_health()
    healthy = database["status"] == "healthy"
    return jsonify({
        "status": "healthy" if healthy else "unhealthy",
        "timestamp": to_utc_z(utcnow()),
        "checks": {"database": database},
    }), 200 if healthy else 503


@system_bp.get("/version")
def version():
    return jsonify({
        "name": "atelier",
        "version": os.environ.get("APP_VERSION", "0.1.0"),
        "git_sha": os.environ.get("GIT_SHA"),
        "location_scoping": bool(current_app.config.get("LOCATION_SCOPING_ENABLED", True)),
    })
