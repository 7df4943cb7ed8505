# Overview: Health and version endpoints for deployment monitoring.

# backend/app/routes/system.py
"""
System endpoints.

/health reports the database (with the workflow backlog: quotations awaiting
prices, proofs awaiting review, shipments awaiting receiver info), the
session table and the media store. /version is for deployment debugging.
"""

import os
import sys
import time
from pathlib import Path

from flask import Blueprint, current_app
from sqlalchemy import func

from ..extensions import db
from ..models import Quotation, Payment, Shipment, SessionToken
from ..models.quotations import QUOTATION_STATUS_PENDING
from ..services.payment_service import PAYMENT_STATUS_PROCESSING
from ..services.shipping_service import SHIPMENT_STATUS_WAITING
from app.time_utils import utcnow, to_utc_z

API_VERSION = "1.0.0"

system_bp = Blueprint("system", __name__)


def _count(model, *criteria) -> int:
    return db.session.query(func.count(model.id)).filter(*criteria).scalar() or 0


def _timed(name: str, check) -> dict:
    """Run one check; any exception marks the component unhealthy."""
    started = time.perf_counter()
    try:
        status, details = check()
        result = {"status": status, "details": details}
    except Exception:
        current_app.logger.exception("%s health check failed", name)
        result = {"status": "unhealthy", "error": f"{name} error"}
    result["latency_ms"] = round((time.perf_counter() - started) * 1000, 2)
    return result


def _database_check():
    return "healthy", {
        "pending_quotations": _count(Quotation, Quotation.status == QUOTATION_STATUS_PENDING),
        "payments_awaiting_review": _count(Payment, Payment.status == PAYMENT_STATUS_PROCESSING),
        "shipments_awaiting_receiver": _count(Shipment, Shipment.status == SHIPMENT_STATUS_WAITING),
    }


def _session_check():
    live = _count(
        SessionToken,
        SessionToken.is_revoked.is_(False),
        SessionToken.expires_at >= utcnow(),
    )
    return "healthy", {"live_sessions": live}


def _media_check():
    # Uploads fail without a writable media root; reads of stored URLs still work
    media_root = Path(current_app.config["MEDIA_ROOT"])
    try:
        media_root.mkdir(parents=True, exist_ok=True)
        writable = os.access(media_root, os.W_OK)
    except OSError:
        writable = False
    return ("healthy" if writable else "degraded"), {"writable": writable}


@system_bp.get("/health")
def health():
    """
    Returns:
        200: healthy, or degraded (uploads unavailable)
        503: database or session table unreachable
    """
    checks = {
        "database": _timed("Database", _database_check),
        "session_service": _timed("Session service", _session_check),
        "media_store": _timed("Media store", _media_check),
    }
    statuses = {c["status"] for c in checks.values()}

    if "unhealthy" in statuses:
        overall, http_status = "unhealthy", 503
    elif "degraded" in statuses:
        overall, http_status = "degraded", 200
    else:
        overall, http_status = "healthy", 200

    return {
        "status": overall,
        "timestamp": to_utc_z(utcnow()),
        "checks": checks,
    }, http_status


@system_bp.get("/version")
def version():
    return {
        "api_version": API_VERSION,
        "environment": "development" if current_app.debug else "production",
        "python_version": sys.version.split()[0],
        "server_time": to_utc_z(utcnow()),
    }
