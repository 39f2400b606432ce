# backend/retail_ledger/routes/system.py
"""
System health endpoint.

Reports database connectivity and read-cache status for deployment
debugging.
"""

import time

from flask import Blueprint, current_app
from sqlalchemy import text

from ..extensions import db
from ..models import Business, Outlet, Product
from ..services.registry import get_services
from ..time_utils import to_utc_z, utcnow

system_bp = Blueprint("system", __name__)


def check_database_health() -> dict:
    start_time = time.time()
    try:
        db.session.execute(text("SELECT 1"))
        details = {
            "businesses": db.session.query(Business).count(),
            "outlets": db.session.query(Outlet).count(),
            "products": db.session.query(Product).count(),
        }
        elapsed_ms = (time.time() - start_time) * 1000
        return {"status": "healthy", "latency_ms": round(elapsed_ms, 2), "details": details}
    except Exception:
        db.session.rollback()
        elapsed_ms = (time.time() - start_time) * 1000
        current_app.logger.exception("Database health check failed")
        return {"status": "unhealthy", "latency_ms": round(elapsed_ms, 2), "error": "Database error"}


def check_cache_health() -> dict:
    # The cache is best effort: disabled is "degraded", never "unhealthy".
    cache = get_services().cache
    return {
        "status": "healthy" if cache.enabled else "degraded",
        "enabled": cache.enabled,
        "entries": cache.size,
        "stats": cache.stats.to_dict(),
    }


@system_bp.get("/health")
def health():
    """
    Returns:
    - 200: database reachable (cache may be degraded)
    - 503: database unreachable
    """
    start_time = time.time()

    database_health = check_database_health()
    cache_health = check_cache_health()

    checks = [database_health, cache_health]
    if any(check["status"] == "unhealthy" for check in checks):
        overall_status, http_status = "unhealthy", 503
    elif any(check["status"] == "degraded" for check in checks):
        overall_status, http_status = "degraded", 200
    else:
        overall_status, http_status = "healthy", 200

    response = {
        "status": overall_status,
        "timestamp": to_utc_z(utcnow()),
        "total_latency_ms": round((time.time() - start_time) * 1000, 2),
        "checks": {
            "database": database_health,
            "cache": cache_health,
        },
    }
    return response, http_status
