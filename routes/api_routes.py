"""
API Routes
Health and collector status for monitoring
"""

import logging
import time
from datetime import datetime, timezone

from flask import Blueprint, current_app, jsonify
from sqlalchemy import text

from app import db
from autonomous_scheduler import get_scheduler_status

logger = logging.getLogger(__name__)

# Create API Blueprint
api_bp = Blueprint('api', __name__, url_prefix='/api')


@api_bp.route('/health')
def health():
    """Database connectivity and round-trip latency"""
    timestamp = datetime.now(timezone.utc).isoformat()

    if not current_app.config.get("PERSISTENCE_ENABLED"):
        return jsonify({
            "status": "healthy",
            "timestamp": timestamp,
            "database": {"enabled": False, "connected": False}
        })

    try:
        started = time.perf_counter()
        db.session.execute(text("SELECT 1"))
        latency_ms = round((time.perf_counter() - started) * 1000, 2)
    except Exception as e:
        logger.error(f"Health check failed: {e}")
        return jsonify({
            "status": "error",
            "timestamp": timestamp,
            "database": {"enabled": True, "connected": False, "error": str(e)}
        }), 503

    return jsonify({
        "status": "healthy",
        "timestamp": timestamp,
        "database": {"enabled": True, "connected": True, "latency_ms": latency_ms}
    })


@api_bp.route('/collectors/status')
def collectors_status():
    """Per-collector last_run, last_result, last_error and next_run"""
    return jsonify(get_scheduler_status())
