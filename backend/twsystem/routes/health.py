# backend/twsystem/routes/health.py
"""
Health endpoints (public).

- GET /api/v1/health           basic status
- GET /api/v1/health/detailed  database latency, record counts, config summary
- GET /api/v1/health/liveness  process is up
- GET /api/v1/health/readiness 503 while the database is unreachable
"""

import sys
import time

from flask import Blueprint, current_app
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError

from ..extensions import db
from ..models import Client, Development, ProductionOrder, ProductionReceipt, ProductionSheet, User
from ..permissions import API_PREFIX
from ..responses import ok
from twsystem.time_utils import to_utc_z, utcnow

health_bp = Blueprint("health", __name__, url_prefix=f"{API_PREFIX}/health")

_STARTED_AT = time.time()


def check_database_health(with_counts: bool = False) -> dict:
    """
    Check database connectivity and, optionally, basic table queries.

    Returns dict with status and details.
    """
    start_time = time.time()
    try:
        db.session.execute(text("SELECT 1"))
        details = None
        if with_counts:
            details = {
                "users": db.session.query(User).count(),
                "clients": db.session.query(Client).count(),
                "developments": db.session.query(Development).count(),
                "production_orders": db.session.query(ProductionOrder).count(),
                "production_sheets": db.session.query(ProductionSheet).count(),
                "production_receipts": db.session.query(ProductionReceipt).count(),
            }
        elapsed_ms = (time.time() - start_time) * 1000
        result = {"status": "healthy", "latency_ms": round(elapsed_ms, 2)}
        if details is not None:
            result["details"] = details
        return result
    except SQLAlchemyError:
        db.session.rollback()
        elapsed_ms = (time.time() - start_time) * 1000
        current_app.logger.exception("Database health check failed")
        return {
            "status": "unhealthy",
            "latency_ms": round(elapsed_ms, 2),
            "error": "Database error",
        }


def _base_status() -> dict:
    return {
        "status": "OK",
        "timestamp": to_utc_z(utcnow()),
        "uptime_seconds": round(time.time() - _STARTED_AT, 2),
        "environment": current_app.config.get("APP_ENV"),
        "version": current_app.config.get("APP_VERSION"),
    }


@health_bp.get("")
def health():
    return ok(_base_status(), message="Service is healthy")


@health_bp.get("/detailed")
def health_detailed():
    """
    Detailed health check.

    Does NOT expose secrets, credentials or internal paths.
    """
    database = check_database_health(with_counts=True)
    body = _base_status()
    body["checks"] = {"database": database}
    body["config"] = {
        "rate_limit_enabled": bool(current_app.config.get("RATE_LIMIT_ENABLED")),
        "allowed_origins": len(current_app.config.get("ALLOWED_ORIGINS") or ()),
        "python_version": sys.version.split()[0],
    }
    if database["status"] != "healthy":
        body["status"] = "DEGRADED"
        return ok(body, message="Service is degraded", status=503)
    return ok(body)


@health_bp.get("/liveness")
def liveness():
    return ok({"status": "alive", "timestamp": to_utc_z(utcnow())})


@health_bp.get("/readiness")
def readiness():
    database = check_database_health()
    if database["status"] != "healthy":
        return ok({"status": "not_ready", "checks": {"database": database}}, message="Service not ready", status=503)
    return ok({"status": "ready", "checks": {"database": database}})
