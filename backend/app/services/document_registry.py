# Overview: Per-type document adapters used by the generic document, edit request and search services.

from __future__ import annotations

import json
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Optional

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
from ..validation import (
    ModelValidationPolicy,
    NotFoundError,
    ValidationError,
    enforce_amount_range,
    validate_payload,
)


@dataclass(frozen=True)
class LineItemSpec:
    """Child rows replaced wholesale whenever the parent payload carries them."""
    relationship: str
    model: type
    policy: ModelValidationPolicy
    amount_fields: tuple[str, ...] = ()
    defaults: dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class DocumentAdapter:
    """
    Everything the generic services need to know about one document type.

    document_type: tagged-union value stored on EditRequest / SavedSearch
    search_type:   value of the ?type= query parameter
    summary_field: human-readable identifying column (notification text)
    attachment_column / upload_field: stored path column and multipart key
    """
    document_type: str
    search_type: str
    label: str
    model: type
    policy: ModelValidationPolicy
    summary_field: str
    attachment_column: str
    upload_field: str
    amount_fields: tuple[str, ...] = ()
    line_items: Optional[LineItemSpec] = None
    search_columns: tuple[str, ...] = ()
    line_item_search_columns: tuple[str, ...] = ()

    def get(self, document_id: str):
        return db.session.get(self.model, document_id)

    def get_or_404(self, document_id: str):
        document = self.get(document_id)
        if document is None:
            raise NotFoundError(f"{self.label} not found")
        return document

    def exists(self, document_id: str) -> bool:
        return db.session.query(self.model.id).filter(self.model.id == document_id).first() is not None

    def apply_grant(self, document_id: str, editable_until: datetime):
        """
        Open the edit grant on a document. Does NOT commit: the caller's
        transaction also resolves the edit request.
        """
        document = (
            db.session.query(self.model)
            .filter(self.model.id == document_id)
            .with_for_update()
            .first()
        )
        if document is None:
            raise NotFoundError(f"{self.label} not found")
        document.allow_editing = True
        document.editable_until = editable_until
        return document

    def summary(self, document) -> dict:
        title = getattr(document, self.summary_field, None)
        return {
            "type": self.document_type,
            "id": document.id,
            "label": self.label,
            "title": title,
            "description": f"{self.label} {title}" if title else f"{self.label} {document.id}",
        }

    def validate(self, payload: dict, *, partial: bool) -> dict:
        patch = validate_payload(model=self.model, payload=payload, policy=self.policy, partial=partial)
        enforce_amount_range(patch, *self.amount_fields)
        return patch

    def build_line_items(self, raw: Any) -> list:
        """Parse a JSON list (or JSON-encoded string from multipart forms) into child rows."""
        spec = self.line_items
        if spec is None:
            return []
        if isinstance(raw, str):
            try:
                raw = json.loads(raw) if raw.strip() else []
            except ValueError:
                raise ValidationError(f"Invalid {spec.relationship} data")
        if not isinstance(raw, list):
            raise ValidationError(f"{spec.relationship} must be a list")

        rows = []
        for idx, item in enumerate(raw):
            if not isinstance(item, dict):
                raise ValidationError(f"{spec.relationship}[{idx}] must be an object")
            data = dict(spec.defaults)
            data.update({k: v for k, v in item.items() if v is not None})
            try:
                patch = validate_payload(model=spec.model, payload=data, policy=spec.policy, partial=False)
                enforce_amount_range(patch, *spec.amount_fields)
            except ValidationError as e:
                raise ValidationError(f"{spec.relationship}[{idx}]: {e}")
            if patch.get("quantity") is not None and patch["quantity"] < 1:
                raise ValidationError(f"{spec.relationship}[{idx}]: quantity must be >= 1")
            rows.append(spec.model(**patch))
        return rows


INVOICE_ADAPTER = DocumentAdapter(
    document_type=DOC_INVOICE,
    search_type="invoice",
    label="Invoice",
    model=Invoice,
    policy=ModelValidationPolicy(
        writable_fields={
            "purchase_date",
            "company_name",
            "order_or_serial_number",
            "vendor_name",
            "contact_number",
            "address",
            "additional_details",
            "total_amount",
        },
        required_on_create={"purchase_date", "company_name", "vendor_name", "address", "total_amount"},
    ),
    summary_field="company_name",
    attachment_column="invoice_file_url",
    upload_field="invoiceFile",
    amount_fields=("total_amount",),
    line_items=LineItemSpec(
        relationship="products",
        model=Product,
        policy=ModelValidationPolicy(
            writable_fields={"product_name", "serial_number", "warranty_years", "quantity", "price"},
            required_on_create={"product_name", "quantity", "price"},
        ),
        amount_fields=("price",),
        defaults={"warranty_years": 0},
    ),
    search_columns=("company_name", "vendor_name", "order_or_serial_number", "additional_details"),
    line_item_search_columns=("product_name", "serial_number"),
)

PURCHASE_ORDER_ADAPTER = DocumentAdapter(
    document_type=DOC_PURCHASE_ORDER,
    search_type="purchaseOrder",
    label="Purchase Order",
    model=PurchaseOrder,
    policy=ModelValidationPolicy(
        writable_fields={
            "order_date",
            "from_address",
            "vendor_name",
            "contact_number",
            "gst_number",
            "purchase_order_number",
            "total_amount",
        },
        required_on_create={"order_date", "from_address", "vendor_name", "purchase_order_number", "total_amount"},
    ),
    summary_field="purchase_order_number",
    attachment_column="purchase_order_file_url",
    upload_field="purchaseOrderFile",
    amount_fields=("total_amount",),
    line_items=LineItemSpec(
        relationship="items",
        model=PurchaseOrderItem,
        policy=ModelValidationPolicy(
            writable_fields={"description", "quantity", "rate"},
            required_on_create={"description", "quantity", "rate"},
        ),
        amount_fields=("rate",),
    ),
    search_columns=("vendor_name", "purchase_order_number", "from_address"),
    line_item_search_columns=("description",),
)

STOCK_REGISTER_ADAPTER = DocumentAdapter(
    document_type=DOC_STOCK_REGISTER,
    search_type="stockRegister",
    label="Stock Register Entry",
    model=StockRegisterEntry,
    policy=ModelValidationPolicy(
        writable_fields={
            "article_name",
            "entry_date",
            "company_name",
            "address",
            "product_details",
            "voucher_or_bill_number",
            "cost_rate",
            "cgst",
            "sgst",
            "receipt_number",
            "page_number",
            "billing_date",
        },
        required_on_create={"article_name", "entry_date", "voucher_or_bill_number", "cost_rate", "billing_date"},
    ),
    summary_field="article_name",
    attachment_column="photo_url",
    upload_field="photo",
    amount_fields=("cost_rate", "cgst", "sgst"),
    search_columns=("article_name", "voucher_or_bill_number", "company_name", "product_details", "receipt_number"),
)

ADAPTERS: dict[str, DocumentAdapter] = {
    a.document_type: a for a in (INVOICE_ADAPTER, PURCHASE_ORDER_ADAPTER, STOCK_REGISTER_ADAPTER)
}

# ?type= aliases accepted by search, export and id validation
_SEARCH_ALIASES = {
    "invoice": DOC_INVOICE,
    "invoices": DOC_INVOICE,
    "purchaseorder": DOC_PURCHASE_ORDER,
    "purchase-order": DOC_PURCHASE_ORDER,
    "purchase-orders": DOC_PURCHASE_ORDER,
    "purchase_order": DOC_PURCHASE_ORDER,
    "stockregister": DOC_STOCK_REGISTER,
    "stock-register": DOC_STOCK_REGISTER,
    "stock_register": DOC_STOCK_REGISTER,
}


def get_adapter(document_type: str) -> DocumentAdapter:
    adapter = ADAPTERS.get((document_type or "").strip().upper())
    if adapter is None:
        raise ValidationError(f"Invalid document type: {document_type}")
    return adapter


def resolve_search_type(value: str) -> DocumentAdapter:
    """Accepts invoice / purchaseOrder / stockRegister (and their dashed forms) or a document_type value."""
    key = (value or "").strip()
    document_type = _SEARCH_ALIASES.get(key.lower()) or key.upper()
    adapter = ADAPTERS.get(document_type)
    if adapter is None:
        raise ValidationError(
            f"Invalid document type '{value}'. Allowed types: invoice, purchaseOrder, stockRegister"
        )
    return adapter


def all_adapters() -> list[DocumentAdapter]:
    return list(ADAPTERS.values())
