# Overview: Flask API routes for the admin side of the edit request workflow.

# backend/app/routes/edit_requests.py
"""
Edit Request API Routes (admin only)

DESIGN:
- List / view requests with the requester and a document summary
- Approve: grants edit permission on the document for the grant duration
- Reject: closes the request with a required reason
- Requesters are notified on edit-request-update-<id> after commit

Filing a request lives with the documents: POST /api/<type>/<id>/request-edit
"""

from flask import Blueprint, request, jsonify, g

from ..extensions import notifications
from ..services import edit_request_service
from ..decorators import require_auth, require_admin
from ..http_errors import json_error


edit_requests_bp = Blueprint("edit_requests", __name__, url_prefix="/api/edit-requests")


def _response_message(data: dict):
    return data.get("response_message", data.get("responseMessage"))


@edit_requests_bp.get("")
@require_auth
@require_admin
def list_edit_requests_route():
    """
    Query params:
    - status: PENDING (default) | APPROVED | REJECTED | ALL
    - page, limit: pagination
    """
    try:
        result = edit_request_service.list_requests(
            status=request.args.get("status"),
            page=request.args.get("page", type=int),
            limit=request.args.get("limit", type=int),
        )
        return jsonify(result)
    except Exception as e:
        return json_error(e, "list edit requests")


@edit_requests_bp.get("/<int:request_id>")
@require_auth
@require_admin
def get_edit_request_route(request_id: int):
    try:
        edit_request = edit_request_service.get_request(request_id)
        return jsonify({"edit_request": edit_request_service.serialize(edit_request)})
    except Exception as e:
        return json_error(e, "get edit request")


@edit_requests_bp.put("/<int:request_id>/approve")
@require_auth
@require_admin
def approve_edit_request_route(request_id: int):
    """
    Request body: {"response_message": "ok"} (optional; responseMessage also accepted)

    Returns:
        200: Request APPROVED, document editable until now + grant duration
        404: Unknown request
        409: Request already resolved
    """
    try:
        data = request.get_json(silent=True) or {}
        edit_request = edit_request_service.approve_request(
            request_id=request_id,
            admin=g.current_user,
            response_message=_response_message(data),
            notifier=notifications.get(),
        )
        return jsonify({
            "edit_request": edit_request_service.serialize(edit_request),
            "message": "Edit request approved",
        })
    except Exception as e:
        return json_error(e, "approve edit request")


@edit_requests_bp.put("/<int:request_id>/reject")
@require_auth
@require_admin
def reject_edit_request_route(request_id: int):
    """
    Request body: {"response_message": "insufficient detail"} (required)

    Returns:
        200: Request REJECTED, document unchanged
        400: Missing response message
        404: Unknown request
        409: Request already resolved
    """
    try:
        data = request.get_json(silent=True) or {}
        edit_request = edit_request_service.reject_request(
            request_id=request_id,
            admin=g.current_user,
            response_message=_response_message(data),
            notifier=notifications.get(),
        )
        return jsonify({
            "edit_request": edit_request_service.serialize(edit_request),
            "message": "Edit request rejected",
        })
    except Exception as e:
        return json_error(e, "reject edit request")
