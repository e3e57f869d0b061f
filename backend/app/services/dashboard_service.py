# Overview: Dashboard summary counts, scoped by role.

from __future__ import annotations

from ..extensions import db
from . import edit_request_ledger
from .document_registry import INVOICE_ADAPTER, PURCHASE_ORDER_ADAPTER, STOCK_REGISTER_ADAPTER


def _count(adapter, acting_user) -> int:
    query = db.session.query(adapter.model)
    if not acting_user.is_admin:
        query = query.filter(adapter.model.owner_id == acting_user.id)
    return query.count()


def get_summary(acting_user) -> dict:
    """
    Admins count every document plus PENDING edit requests; users count
    their own documents and always see 0 pending requests.
    """
    return {
        "total_invoices": _count(INVOICE_ADAPTER, acting_user),
        "total_purchase_orders": _count(PURCHASE_ORDER_ADAPTER, acting_user),
        "total_stock_entries": _count(STOCK_REGISTER_ADAPTER, acting_user),
        "pending_edit_requests": edit_request_ledger.count_pending() if acting_user.is_admin else 0,
    }
