# backend/app/routes/system.py
"""
System health and version endpoints.

Health covers the database, the session table and the notification
transport. A broken notifier only degrades the service: edit request
workflows still commit without it.
"""

import sys
import time

import redis
from flask import Blueprint, current_app

from ..extensions import db, notifications
from ..models import EditRequest, Invoice, PurchaseOrder, SessionToken, StockRegisterEntry, User
from ..models import STATUS_PENDING
from ..services.notification_service import RedisNotifier
from app.time_utils import to_utc_z, utcnow

system_bp = Blueprint("system", __name__)


def _elapsed_ms(start_time: float) -> float:
    return round((time.time() - start_time) * 1000, 2)


def check_database_health() -> dict:
    """Row counts across the core tables prove connectivity and schema."""
    start_time = time.time()
    try:
        details = {
            "users": db.session.query(User).count(),
            "invoices": db.session.query(Invoice).count(),
            "purchase_orders": db.session.query(PurchaseOrder).count(),
            "stock_register_entries": db.session.query(StockRegisterEntry).count(),
            "pending_edit_requests": db.session.query(EditRequest).filter_by(status=STATUS_PENDING).count(),
        }
        return {"status": "healthy", "latency_ms": _elapsed_ms(start_time), "details": details}
    except Exception:
        db.session.rollback()
        current_app.logger.exception("Database health check failed")
        return {"status": "unhealthy", "latency_ms": _elapsed_ms(start_time), "error": "Database error"}


def check_session_service_health() -> dict:
    start_time = time.time()
    try:
        now = utcnow()
        active_sessions = db.session.query(SessionToken).filter_by(is_revoked=False).count()
        expired_sessions = db.session.query(SessionToken).filter(
            SessionToken.expires_at < now,
            SessionToken.is_revoked.is_(False),
        ).count()
        return {
            "status": "healthy",
            "latency_ms": _elapsed_ms(start_time),
            "details": {
                "active_sessions": active_sessions,
                "expired_pending_cleanup": expired_sessions,
            },
        }
    except Exception:
        db.session.rollback()
        current_app.logger.exception("Session service health check failed")
        return {"status": "unhealthy", "latency_ms": _elapsed_ms(start_time), "error": "Session service error"}


def check_notifier_health() -> dict:
    start_time = time.time()
    notifier = notifications.get()
    backend = current_app.config.get("NOTIFIER_BACKEND", "null")
    if isinstance(notifier, RedisNotifier):
        try:
            notifier.client.ping()
        except redis.RedisError:
            current_app.logger.warning("Notifier health check failed", exc_info=True)
            return {
                "status": "degraded",
                "latency_ms": _elapsed_ms(start_time),
                "backend": backend,
                "warning": "Redis unreachable; notifications are being dropped",
            }
    return {"status": "healthy", "latency_ms": _elapsed_ms(start_time), "backend": backend}


@system_bp.get("/health")
def health():
    """
    Returns:
    - 200: healthy or degraded (still operational)
    - 503: database or session checks failed
    """
    start_time = time.time()

    checks = {
        "database": check_database_health(),
        "session_service": check_session_service_health(),
        "notifications": check_notifier_health(),
    }
    statuses = [c["status"] for c in checks.values()]

    if "unhealthy" in statuses:
        overall_status, http_status = "unhealthy", 503
    elif "degraded" in statuses:
        overall_status, http_status = "degraded", 200
    else:
        overall_status, http_status = "healthy", 200

    return {
        "status": overall_status,
        "timestamp": to_utc_z(utcnow()),
        "total_latency_ms": _elapsed_ms(start_time),
        "checks": checks,
    }, http_status


@system_bp.get("/version")
def version():
    """Non-sensitive deployment info (no secrets, credentials or paths)."""
    env = "production" if not current_app.debug else "development"
    return {
        "api_version": "1.0.0",
        "environment": env,
        "python_version": sys.version.split()[0],
        "server_time": to_utc_z(utcnow()),
    }
