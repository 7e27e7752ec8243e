# backend/flexpos/routes/system.py
"""
System health endpoint.

Reports database connectivity and whether the schema has been provisioned,
so operators can tell "run init-db" apart from a transient outage.
"""

import time
from flask import Blueprint, current_app, jsonify

from ..errors import ConfigurationError
from ..extensions import db
from ..models import Organization
from ..services.concurrency import run_read
from ..time_utils import utcnow, to_utc_z

system_bp = Blueprint("system", __name__)


def check_database_health() -> dict:
    """
    Check database connectivity and that the schema exists.

    Returns dict with status and details.
    """
    start_time = time.time()
    try:
        org_count = run_read(lambda: db.session.query(Organization).count())
        elapsed_ms = (time.time() - start_time) * 1000
        return {
            "status": "healthy",
            "latency_ms": round(elapsed_ms, 2),
            "details": {"organizations": org_count},
        }
    except ConfigurationError as e:
        return {
            "status": "not_provisioned",
            "latency_ms": round((time.time() - start_time) * 1000, 2),
            "error": str(e),
        }
    except Exception:
        elapsed_ms = (time.time() - start_time) * 1000
        current_app.logger.exception("Database health check failed")
        return {
            "status": "unhealthy",
            "latency_ms": round(elapsed_ms, 2),
            "error": "Database error",
        }


@system_bp.get("/health")
def health():
    database = check_database_health()
    healthy = database["status"] == "healthy"
    status_code = 200 if healthy else 503
    return jsonify({
        "status": "healthy" if healthy else "unhealthy",
        "timestamp": to_utc_z(utcnow()),
        "checks": {"database": database},
    }), status_code
