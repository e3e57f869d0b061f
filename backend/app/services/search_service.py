# Overview: Basic and advanced document search, CSV export and id availability checks.

from __future__ import annotations

import csv
import io
from datetime import timedelta
from typing import Callable, Optional

from sqlalchemy import or_

from ..extensions import db
from ..models import (
    DOC_INVOICE,
    DOC_PURCHASE_ORDER,
    DOC_STOCK_REGISTER,
    Invoice,
    Product,
    PurchaseOrder,
    PurchaseOrderItem,
    StockRegisterEntry,
)
from ..pagination import normalize_page, offset_for, page_response
from ..validation import ValidationError
from app.time_utils import parse_iso_datetime, to_iso_date, utcnow
from .document_registry import DocumentAdapter, all_adapters, resolve_search_type


STOCK_SORT_FIELDS = {
    "article_name",
    "entry_date",
    "billing_date",
    "voucher_or_bill_number",
    "cost_rate",
    "total_rate",
    "created_at",
    "updated_at",
}


# =============================================================================
# FILTER HELPERS
# =============================================================================

def _contains(column, term: str):
    """Case-insensitive substring match; LIKE wildcards in term are literal."""
    escaped = term.strip().replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")
    return column.ilike(f"%{escaped}%", escape="\\")


def _text(params: dict, key: str) -> Optional[str]:
    value = params.get(key)
    if value is None:
        return None
    value = str(value).strip()
    return value or None


def _number(params: dict, key: str) -> Optional[float]:
    value = _text(params, key)
    if value is None:
        return None
    try:
        return float(value)
    except ValueError:
        raise ValidationError(f"{key} must be a number")


def _date_range(column, params: dict, from_key: str, to_key: str) -> list:
    """
    Inclusive range. A date-only upper bound ("2025-04-30") covers the whole
    day, so it is turned into an exclusive bound at the next midnight.
    """
    clauses = []
    raw_from = _text(params, from_key)
    raw_to = _text(params, to_key)
    try:
        start = parse_iso_datetime(raw_from) if raw_from else None
        end = parse_iso_datetime(raw_to) if raw_to else None
    except ValueError:
        raise ValidationError(f"{from_key}/{to_key} must be ISO-8601 dates")
    if start is not None:
        clauses.append(column >= start)
    if end is not None:
        if len(raw_to) == 10:
            clauses.append(column < end + timedelta(days=1))
        else:
            clauses.append(column <= end)
    return clauses


def _amount_range(column, params: dict, min_key: str, max_key: str) -> list:
    clauses = []
    low = _number(params, min_key)
    high = _number(params, max_key)
    if low is not None:
        clauses.append(column >= low)
    if high is not None:
        clauses.append(column <= high)
    return clauses


def _text_filters(model, params: dict, fields: tuple[str, ...]) -> list:
    clauses = []
    for field in fields:
        term = _text(params, field)
        if term:
            clauses.append(_contains(getattr(model, field), term))
    return clauses


# =============================================================================
# ADVANCED FILTER BUILDERS (one per document type)
# =============================================================================

def _invoice_filters(params: dict) -> list:
    clauses = _date_range(Invoice.purchase_date, params, "date_from", "date_to")
    clauses += _text_filters(Invoice, params, ("company_name", "vendor_name", "order_or_serial_number"))
    clauses += _amount_range(Invoice.total_amount, params, "min_amount", "max_amount")

    # Match any product where EITHER name OR serial matches
    product_terms = []
    if _text(params, "product_name"):
        product_terms.append(_contains(Product.product_name, params["product_name"]))
    if _text(params, "product_serial_number"):
        product_terms.append(
            _contains(Product.serial_number, params["product_serial_number"])
        )
    if product_terms:
        clauses.append(Invoice.products.any(or_(*product_terms)))
    return clauses


def _purchase_order_filters(params: dict) -> list:
    clauses = _date_range(PurchaseOrder.order_date, params, "date_from", "date_to")
    clauses += _text_filters(PurchaseOrder, params, ("vendor_name", "purchase_order_number"))
    clauses += _amount_range(PurchaseOrder.total_amount, params, "min_amount", "max_amount")
    description = _text(params, "item_description")
    if description:
        clauses.append(PurchaseOrder.items.any(_contains(PurchaseOrderItem.description, description)))
    return clauses


def _stock_register_filters(params: dict) -> list:
    clauses = _date_range(StockRegisterEntry.entry_date, params, "entry_date_from", "entry_date_to")
    clauses += _date_range(StockRegisterEntry.billing_date, params, "billing_date_from", "billing_date_to")
    clauses += _text_filters(
        StockRegisterEntry,
        params,
        ("article_name", "company_name", "voucher_or_bill_number", "receipt_number", "product_details"),
    )
    clauses += _amount_range(StockRegisterEntry.cost_rate, params, "min_cost_rate", "max_cost_rate")
    return clauses


FILTER_BUILDERS: dict[str, Callable[[dict], list]] = {
    DOC_INVOICE: _invoice_filters,
    DOC_PURCHASE_ORDER: _purchase_order_filters,
    DOC_STOCK_REGISTER: _stock_register_filters,
}


def _ordering(adapter: DocumentAdapter, params: dict) -> list:
    model = adapter.model
    if adapter.document_type == DOC_STOCK_REGISTER:
        field = params.get("sort_by") if params.get("sort_by") in STOCK_SORT_FIELDS else "created_at"
        column = getattr(model, field)
        direction = str(params.get("sort_order") or "desc").lower()
        return [column.asc() if direction == "asc" else column.desc(), model.id.asc()]
    return [model.created_at.desc(), model.id.asc()]


def _scoped_query(adapter: DocumentAdapter, acting_user):
    query = db.session.query(adapter.model)
    if not acting_user.is_admin:
        query = query.filter(adapter.model.owner_id == acting_user.id)
    return query


def _advanced_query(adapter: DocumentAdapter, params: dict, acting_user):
    params = params or {}
    query = _scoped_query(adapter, acting_user)
    clauses = FILTER_BUILDERS[adapter.document_type](params)
    if clauses:
        query = query.filter(*clauses)
    return query.order_by(*_ordering(adapter, params))


# =============================================================================
# BASIC SEARCH
# =============================================================================

def _basic_clause(adapter: DocumentAdapter, query_text: str):
    terms = [_contains(getattr(adapter.model, c), query_text) for c in adapter.search_columns]
    if adapter.line_items and adapter.line_item_search_columns:
        relationship = getattr(adapter.model, adapter.line_items.relationship)
        child = adapter.line_items.model
        terms.append(relationship.any(or_(*[
            _contains(getattr(child, c), query_text) for c in adapter.line_item_search_columns
        ])))
    return or_(*terms)


def _tagged(adapter: DocumentAdapter, document) -> dict:
    data = document.to_dict()
    data["document_type"] = adapter.search_type
    return data


def basic_search(
    *,
    query_text: str,
    acting_user,
    search_type: Optional[str] = None,
    page: Optional[int] = None,
    limit: Optional[int] = None,
) -> dict:
    """
    Free-text search over the identifying columns (and line items).

    With search_type omitted every document type is searched; the combined
    results are ordered newest first and paginated in memory.
    """
    if not query_text or not str(query_text).strip():
        raise ValidationError("Search query parameter is required")
    query_text = str(query_text).strip()
    page, limit = normalize_page(page, limit)

    if search_type and str(search_type).strip().lower() != "all":
        adapter = resolve_search_type(search_type)
        query = _scoped_query(adapter, acting_user).filter(_basic_clause(adapter, query_text))
        total = query.count()
        rows = (
            query.order_by(adapter.model.created_at.desc(), adapter.model.id.asc())
            .offset(offset_for(page, limit))
            .limit(limit)
            .all()
        )
        result = page_response([_tagged(adapter, d) for d in rows], page=page, limit=limit, total=total)
        result["search_type"] = adapter.search_type
        return result

    combined = []
    for adapter in all_adapters():
        docs = _scoped_query(adapter, acting_user).filter(_basic_clause(adapter, query_text)).all()
        combined.extend((d.created_at, _tagged(adapter, d)) for d in docs)
    combined.sort(key=lambda pair: pair[0], reverse=True)

    start = offset_for(page, limit)
    items = [data for _, data in combined[start:start + limit]]
    result = page_response(items, page=page, limit=limit, total=len(combined))
    result["search_type"] = "all"
    return result


# =============================================================================
# ADVANCED SEARCH
# =============================================================================

def advanced_search(
    *,
    search_type: str,
    params: dict,
    acting_user,
    page: Optional[int] = None,
    limit: Optional[int] = None,
) -> dict:
    adapter = resolve_search_type(search_type)
    page, limit = normalize_page(page, limit)
    query = _advanced_query(adapter, params, acting_user)
    total = query.order_by(None).count()
    rows = query.offset(offset_for(page, limit)).limit(limit).all()
    result = page_response([_tagged(adapter, d) for d in rows], page=page, limit=limit, total=total)
    result["search_type"] = adapter.search_type
    return result


# =============================================================================
# CSV EXPORT
# =============================================================================

def _invoice_row(doc) -> list:
    products = "; ".join(
        f"{p.product_name}(SN:{p.serial_number or 'N/A'},Qty:{p.quantity})" for p in doc.products
    )
    return [
        doc.id, doc.company_name, doc.vendor_name, to_iso_date(doc.purchase_date),
        doc.order_or_serial_number or "", doc.total_amount, products,
    ]


def _purchase_order_row(doc) -> list:
    items = "; ".join(f"{i.description}(Qty:{i.quantity})" for i in doc.items)
    return [
        doc.id, doc.vendor_name, to_iso_date(doc.order_date),
        doc.purchase_order_number, doc.total_amount, items,
    ]


def _stock_register_row(doc) -> list:
    return [
        doc.id, doc.article_name, to_iso_date(doc.entry_date), to_iso_date(doc.billing_date),
        doc.company_name or "", doc.voucher_or_bill_number, doc.cost_rate, doc.cgst, doc.sgst,
        doc.total_rate, doc.receipt_number or "", "" if doc.page_number is None else doc.page_number,
    ]


CSV_LAYOUTS: dict[str, tuple[list[str], Callable]] = {
    DOC_INVOICE: (
        ["ID", "Company Name", "Vendor Name", "Purchase Date", "Order/Serial Number", "Total Amount", "Products"],
        _invoice_row,
    ),
    DOC_PURCHASE_ORDER: (
        ["ID", "Vendor Name", "Order Date", "Purchase Order Number", "Total Amount", "Items"],
        _purchase_order_row,
    ),
    DOC_STOCK_REGISTER: (
        [
            "ID", "Article Name", "Entry Date", "Billing Date", "Company Name", "Voucher/Bill Number",
            "Cost Rate", "CGST", "SGST", "Total Rate", "Receipt Number", "Page Number",
        ],
        _stock_register_row,
    ),
}


def export_csv(*, search_type: str, params: dict, acting_user) -> tuple[str, str, int]:
    """
    Every document matching the advanced filters (no pagination) as CSV.

    Returns (filename, csv_text, row_count). An empty match still yields
    the header row.
    """
    if not search_type or not str(search_type).strip():
        raise ValidationError("Document type parameter (type) is required for export")
    adapter = resolve_search_type(search_type)
    header, to_row = CSV_LAYOUTS[adapter.document_type]

    docs = _advanced_query(adapter, params, acting_user).all()

    buffer = io.StringIO()
    writer = csv.writer(buffer, lineterminator="\n")
    writer.writerow(header)
    for doc in docs:
        writer.writerow(to_row(doc))

    filename = f"{adapter.search_type}_export_{utcnow().date().isoformat()}.csv"
    return filename, buffer.getvalue(), len(docs)


# =============================================================================
# ID VALIDATION
# =============================================================================

def validate_unique_id(*, document_id, search_type) -> dict:
    document_id = str(document_id).strip() if document_id is not None else ""
    if not document_id or not search_type:
        raise ValidationError("ID and document type are required")
    adapter = resolve_search_type(search_type)
    exists = adapter.exists(document_id)
    return {
        "id": document_id,
        "document_type": adapter.document_type,
        "is_unique": not exists,
        "message": (
            f"ID '{document_id}' already exists for type '{search_type}'"
            if exists
            else f"ID '{document_id}' is available for type '{search_type}'"
        ),
    }
