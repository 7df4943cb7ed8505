# Overview: Flask API route for the dashboard home metrics.

from flask import Blueprint, jsonify, g, current_app

from ..services import dashboard_service
from ..decorators import require_auth


dashboard_bp = Blueprint("dashboard", __name__, url_prefix="/api/dashboard")


@dashboard_bp.get("/metrics")
@require_auth
def metrics_route():
    """
    Pending quotations, active/delivered shipments, total spend (COMPLETED
    payments) and the three most recent quotations.
    """
    try:
        return jsonify(dashboard_service.get_metrics(g.current_user)), 200
    except Exception:
        current_app.logger.exception("Failed to load dashboard metrics")
        return jsonify({"error": "Internal server error"}), 500
