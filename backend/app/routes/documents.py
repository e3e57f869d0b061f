# Overview: Flask API routes for invoices, purchase orders and stock register entries.

# backend/app/routes/documents.py
"""
Document API Routes

One blueprint per document type, built from the same factory:

    /api/invoices          (attachment field: invoiceFile, line items: products)
    /api/purchase-orders   (attachment field: purchaseOrderFile, line items: items)
    /api/stock-register    (attachment field: photo)

Create and update accept JSON or multipart/form-data. In multipart bodies
line items are sent as a JSON-encoded string.

EDIT PERMISSION:
- Owners edit freely inside the initial window after creation
- Afterwards PUT returns 403 with can_request_permission; the owner files
  POST /<id>/request-edit and waits for an admin decision
- Admins may always edit
"""

from flask import Blueprint, request, jsonify, g

from ..extensions import notifications
from ..services import document_service
from ..services import edit_request_service
from ..services.document_registry import get_adapter
from ..services.edit_request_service import serialize as serialize_edit_request
from ..models import DOC_INVOICE, DOC_PURCHASE_ORDER, DOC_STOCK_REGISTER
from ..decorators import require_auth
from ..http_errors import json_error


def _read_payload(upload_field: str):
    """Returns (payload, attachment) from a JSON or multipart request."""
    if request.mimetype == "multipart/form-data":
        return request.form.to_dict(), request.files.get(upload_field)
    return request.get_json(silent=True) or {}, None


def make_document_blueprint(document_type: str, name: str, url_prefix: str) -> Blueprint:
    adapter = get_adapter(document_type)
    bp = Blueprint(name, __name__, url_prefix=url_prefix)
    noun = adapter.label.lower()

    @bp.post("")
    @require_auth
    def create_route():
        """
        Returns:
            201: Document created (owned by the caller)
            400: Missing id / required fields, bad attachment type
            409: id already used
        """
        try:
            payload, attachment = _read_payload(adapter.upload_field)
            document = document_service.create_document(
                document_type=document_type,
                payload=payload,
                owner=g.current_user,
                attachment=attachment,
            )
            return jsonify(document.to_dict()), 201
        except Exception as e:
            return json_error(e, f"create {noun}")

    @bp.get("")
    @require_auth
    def list_route():
        try:
            result = document_service.list_documents(
                document_type=document_type,
                acting_user=g.current_user,
                page=request.args.get("page", type=int),
                limit=request.args.get("limit", type=int),
            )
            return jsonify(result)
        except Exception as e:
            return json_error(e, f"list {noun}s")

    @bp.get("/<document_id>")
    @require_auth
    def get_route(document_id: str):
        try:
            document = document_service.get_document(
                document_type=document_type,
                document_id=document_id,
                acting_user=g.current_user,
            )
            return jsonify(document.to_dict())
        except Exception as e:
            return json_error(e, f"get {noun}")

    @bp.get("/<document_id>/edit-permission")
    @require_auth
    def edit_permission_route(document_id: str):
        """Current edit decision for the caller (frontend enables/disables the edit form)."""
        try:
            decision = document_service.check_edit_permission(
                document_type=document_type,
                document_id=document_id,
                acting_user=g.current_user,
            )
            body = decision.to_dict()
            body["can_request_permission"] = decision.needs_permission_request
            return jsonify(body)
        except Exception as e:
            return json_error(e, f"check {noun} edit permission")

    @bp.put("/<document_id>")
    @require_auth
    def update_route(document_id: str):
        """
        Returns:
            200: Updated document
            400: Invalid fields
            403: Edit not allowed ({"error", "can_request_permission", "reason"})
            404: Unknown document
        """
        try:
            payload, attachment = _read_payload(adapter.upload_field)
            document = document_service.update_document(
                document_type=document_type,
                document_id=document_id,
                payload=payload,
                acting_user=g.current_user,
                attachment=attachment,
            )
            return jsonify(document.to_dict())
        except Exception as e:
            return json_error(e, f"update {noun}")

    @bp.delete("/<document_id>")
    @require_auth
    def delete_route(document_id: str):
        try:
            document_service.delete_document(
                document_type=document_type,
                document_id=document_id,
                acting_user=g.current_user,
            )
            return jsonify({"message": f"{adapter.label} deleted successfully"})
        except Exception as e:
            return json_error(e, f"delete {noun}")

    @bp.post("/<document_id>/request-edit")
    @require_auth
    def request_edit_route(document_id: str):
        """
        Owner asks an admin for renewed edit permission.

        Request body: {"request_message": "..."} (requestMessage also accepted)

        Returns:
            201: EditRequest created (PENDING); admins notified
            400: Blank message, or the document is still editable
            403: Caller is not the owner
            404: Unknown document
            409: A PENDING request already exists
        """
        try:
            data = request.get_json(silent=True) or {}
            message = data.get("request_message", data.get("requestMessage"))
            edit_request = edit_request_service.create_request(
                document_type=document_type,
                document_id=document_id,
                requester=g.current_user,
                message=message,
                notifier=notifications.get(),
            )
            return jsonify({
                "edit_request": serialize_edit_request(edit_request),
                "message": "Edit permission request submitted successfully",
            }), 201
        except Exception as e:
            return json_error(e, f"request {noun} edit permission")

    return bp


invoices_bp = make_document_blueprint(DOC_INVOICE, "invoices", "/api/invoices")
purchase_orders_bp = make_document_blueprint(DOC_PURCHASE_ORDER, "purchase_orders", "/api/purchase-orders")
stock_register_bp = make_document_blueprint(DOC_STOCK_REGISTER, "stock_register", "/api/stock-register")
