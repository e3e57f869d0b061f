# Overview: Flask API routes for search, CSV export, id validation and saved searches.

from flask import Blueprint, Response, request, jsonify, g

from ..services import search_service
from ..services import saved_search_service
from ..decorators import require_auth
from ..http_errors import json_error


search_bp = Blueprint("search", __name__, url_prefix="/api/search")

# /advanced/<segment> -> ?type value understood by the search service
ADVANCED_SEGMENTS = {
    "invoices": "invoice",
    "purchase-orders": "purchaseOrder",
    "stock-register": "stockRegister",
}

PAGINATION_KEYS = {"page", "limit"}


def _filter_params(*exclude: str) -> dict:
    skip = PAGINATION_KEYS | set(exclude)
    return {k: v for k, v in request.args.items() if k not in skip}


# =============================================================================
# SEARCH
# =============================================================================

@search_bp.get("")
@require_auth
def basic_search_route():
    """
    Query params:
    - query: text to match (required)
    - type: invoice | purchaseOrder | stockRegister (omit for all types)
    - page, limit
    """
    try:
        result = search_service.basic_search(
            query_text=request.args.get("query", ""),
            search_type=request.args.get("type"),
            acting_user=g.current_user,
            page=request.args.get("page", type=int),
            limit=request.args.get("limit", type=int),
        )
        return jsonify(result)
    except Exception as e:
        return json_error(e, "search documents")


@search_bp.get("/advanced/<segment>")
@require_auth
def advanced_search_route(segment: str):
    """
    Per-type filters (all optional):
    - invoices: date_from, date_to, company_name, vendor_name,
      order_or_serial_number, product_name, product_serial_number,
      min_amount, max_amount
    - purchase-orders: date_from, date_to, vendor_name,
      purchase_order_number, item_description, min_amount, max_amount
    - stock-register: entry_date_from/to, billing_date_from/to,
      article_name, company_name, voucher_or_bill_number, receipt_number,
      product_details, min_cost_rate, max_cost_rate, sort_by, sort_order
    """
    search_type = ADVANCED_SEGMENTS.get(segment)
    if search_type is None:
        return jsonify({"error": f"Unknown search target: {segment}"}), 404
    try:
        result = search_service.advanced_search(
            search_type=search_type,
            params=_filter_params(),
            acting_user=g.current_user,
            page=request.args.get("page", type=int),
            limit=request.args.get("limit", type=int),
        )
        return jsonify(result)
    except Exception as e:
        return json_error(e, f"run advanced {segment} search")


@search_bp.get("/export")
@require_auth
def export_route():
    """CSV download of every match for ?type and the advanced filters."""
    try:
        filename, content, _ = search_service.export_csv(
            search_type=request.args.get("type"),
            params=_filter_params("type", "format"),
            acting_user=g.current_user,
        )
        return Response(
            content,
            mimetype="text/csv",
            headers={"Content-Disposition": f"attachment; filename={filename}"},
        )
    except Exception as e:
        return json_error(e, "export search results")


@search_bp.post("/validate-id")
@require_auth
def validate_id_route():
    """Request body: {"id": "INV-001", "type": "invoice"}"""
    try:
        data = request.get_json(silent=True) or {}
        result = search_service.validate_unique_id(
            document_id=data.get("id"),
            search_type=data.get("type"),
        )
        return jsonify(result)
    except Exception as e:
        return json_error(e, "validate document id")


# =============================================================================
# SAVED SEARCHES
# =============================================================================

@search_bp.post("/saved")
@require_auth
def create_saved_search_route():
    """
    Request body:
    {
        "name": "Dell invoices 2025",
        "document_type": "INVOICE",
        "search_params": {"vendor_name": "dell", "date_from": "2025-01-01"}
    }
    """
    try:
        saved = saved_search_service.create_saved_search(
            user=g.current_user,
            payload=request.get_json(silent=True) or {},
        )
        return jsonify({"saved_search": saved.to_dict(), "message": "Search saved successfully"}), 201
    except Exception as e:
        return json_error(e, "save search")


@search_bp.get("/saved")
@require_auth
def list_saved_searches_route():
    try:
        rows = saved_search_service.list_saved_searches(
            user=g.current_user,
            document_type=request.args.get("document_type"),
        )
        return jsonify({"items": [s.to_dict() for s in rows], "count": len(rows)})
    except Exception as e:
        return json_error(e, "list saved searches")


@search_bp.get("/saved/<int:saved_search_id>")
@require_auth
def get_saved_search_route(saved_search_id: int):
    try:
        saved = saved_search_service.get_saved_search(saved_search_id=saved_search_id, user=g.current_user)
        return jsonify({"saved_search": saved.to_dict()})
    except Exception as e:
        return json_error(e, "get saved search")


@search_bp.put("/saved/<int:saved_search_id>")
@require_auth
def update_saved_search_route(saved_search_id: int):
    try:
        saved = saved_search_service.update_saved_search(
            saved_search_id=saved_search_id,
            user=g.current_user,
            payload=request.get_json(silent=True) or {},
        )
        return jsonify({"saved_search": saved.to_dict(), "message": "Saved search updated successfully"})
    except Exception as e:
        return json_error(e, "update saved search")


@search_bp.delete("/saved/<int:saved_search_id>")
@require_auth
def delete_saved_search_route(saved_search_id: int):
    try:
        saved_search_service.delete_saved_search(saved_search_id=saved_search_id, user=g.current_user)
        return jsonify({"message": "Saved search deleted successfully"})
    except Exception as e:
        return json_error(e, "delete saved search")
