# Overview: Flask API route for the dashboard summary.

from flask import Blueprint, jsonify, g

from ..services import dashboard_service
from ..decorators import require_auth
from ..http_errors import json_error


dashboard_bp = Blueprint("dashboard", __name__, url_prefix="/api/dashboard")


@dashboard_bp.get("/summary")
@require_auth
def summary_route():
    """
    Document counts (own for users, all for admins) and, for admins, the
    number of PENDING edit requests.
    """
    try:
        return jsonify(dashboard_service.get_summary(g.current_user))
    except Exception as e:
        return json_error(e, "load dashboard summary")
