from __future__ import annotations

from sqlalchemy.orm import declared_attr

from ..extensions import db
from app.time_utils import to_utc_z, utcnow


class EditableDocumentMixin:
    """
    Columns shared by every owned, time-windowed document.

    EDIT PERMISSION:
    - allow_editing / editable_until are written ONLY by the edit request
      workflow when an admin approves a request (see edit_request_service).
    - Whether a user may edit right now is derived from these columns plus
      created_at and the clock (see edit_permission.can_edit); it is never
      stored.

    The primary key is supplied by the client (invoice numbers, PO ids,
    register entry ids) and must be unique per document type.
    """

    id = db.Column(db.String(191), primary_key=True)

    allow_editing = db.Column(db.Boolean, nullable=False, default=False)
    editable_until = db.Column(db.DateTime(timezone=True), nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow, index=True)
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow)

    @declared_attr
    def owner_id(cls):
        return db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False, index=True)

    @declared_attr
    def owner(cls):
        return db.relationship("User")

    def _permission_fields(self) -> dict:
        return {
            "id": self.id,
            "owner_id": self.owner_id,
            "owner": self.owner.to_ref() if self.owner else None,
            "allow_editing": self.allow_editing,
            "editable_until": to_utc_z(self.editable_until),
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }


class Invoice(EditableDocumentMixin, db.Model):
    """Vendor invoice with purchased products (warranty tracking)."""
    __tablename__ = "invoices"

    purchase_date = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)
    company_name = db.Column(db.String(191), nullable=False)
    order_or_serial_number = db.Column(db.String(191), nullable=True)
    vendor_name = db.Column(db.String(191), nullable=False)
    contact_number = db.Column(db.String(64), nullable=True)
    address = db.Column(db.String(191), nullable=False)
    additional_details = db.Column(db.Text, nullable=True)
    total_amount = db.Column(db.Float, nullable=False)
    invoice_file_url = db.Column(db.String(512), nullable=True)

    products = db.relationship(
        "Product",
        backref="invoice",
        lazy=True,
        cascade="all, delete-orphan",
        order_by="Product.id",
    )

    def to_dict(self) -> dict:
        data = self._permission_fields()
        data.update({
            "purchase_date": to_utc_z(self.purchase_date),
            "company_name": self.company_name,
            "order_or_serial_number": self.order_or_serial_number,
            "vendor_name": self.vendor_name,
            "contact_number": self.contact_number,
            "address": self.address,
            "additional_details": self.additional_details,
            "total_amount": self.total_amount,
            "invoice_file_url": self.invoice_file_url,
            "products": [p.to_dict() for p in self.products],
        })
        return data


class Product(db.Model):
    """Invoice line item."""
    __tablename__ = "products"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    invoice_id = db.Column(
        db.String(191),
        db.ForeignKey("invoices.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    product_name = db.Column(db.String(191), nullable=False)
    serial_number = db.Column(db.String(191), nullable=True)
    warranty_years = db.Column(db.Integer, nullable=False, default=0)
    quantity = db.Column(db.Integer, nullable=False)
    price = db.Column(db.Float, nullable=False)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "invoice_id": self.invoice_id,
            "product_name": self.product_name,
            "serial_number": self.serial_number,
            "warranty_years": self.warranty_years,
            "quantity": self.quantity,
            "price": self.price,
        }


class PurchaseOrder(EditableDocumentMixin, db.Model):
    """Outgoing purchase order with its line items."""
    __tablename__ = "purchase_orders"

    order_date = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)
    from_address = db.Column(db.String(191), nullable=False)
    vendor_name = db.Column(db.String(191), nullable=False)
    contact_number = db.Column(db.String(64), nullable=True)
    gst_number = db.Column(db.String(64), nullable=True)
    purchase_order_number = db.Column(db.String(191), nullable=False, index=True)
    total_amount = db.Column(db.Float, nullable=False)
    purchase_order_file_url = db.Column(db.String(512), nullable=True)

    items = db.relationship(
        "PurchaseOrderItem",
        backref="purchase_order",
        lazy=True,
        cascade="all, delete-orphan",
        order_by="PurchaseOrderItem.id",
    )

    def to_dict(self) -> dict:
        data = self._permission_fields()
        data.update({
            "order_date": to_utc_z(self.order_date),
            "from_address": self.from_address,
            "vendor_name": self.vendor_name,
            "contact_number": self.contact_number,
            "gst_number": self.gst_number,
            "purchase_order_number": self.purchase_order_number,
            "total_amount": self.total_amount,
            "purchase_order_file_url": self.purchase_order_file_url,
            "items": [i.to_dict() for i in self.items],
        })
        return data


class PurchaseOrderItem(db.Model):
    """Purchase order line item."""
    __tablename__ = "purchase_order_items"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    purchase_order_id = db.Column(
        db.String(191),
        db.ForeignKey("purchase_orders.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    description = db.Column(db.String(255), nullable=False)
    quantity = db.Column(db.Integer, nullable=False)
    rate = db.Column(db.Float, nullable=False)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "purchase_order_id": self.purchase_order_id,
            "description": self.description,
            "quantity": self.quantity,
            "rate": self.rate,
        }


class StockRegisterEntry(EditableDocumentMixin, db.Model):
    """
    Stock register line (one article received).

    total_rate is derived: cost_rate + cgst + sgst. It is recomputed on every
    create and update and never accepted from clients.
    """
    __tablename__ = "stock_register_entries"

    article_name = db.Column(db.String(191), nullable=False)
    entry_date = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)
    company_name = db.Column(db.String(191), nullable=True)
    address = db.Column(db.String(191), nullable=True)
    product_details = db.Column(db.Text, nullable=True)
    voucher_or_bill_number = db.Column(db.String(191), nullable=False)
    cost_rate = db.Column(db.Float, nullable=False)
    cgst = db.Column(db.Float, nullable=False, default=0)
    sgst = db.Column(db.Float, nullable=False, default=0)
    total_rate = db.Column(db.Float, nullable=False)
    receipt_number = db.Column(db.String(191), nullable=True)
    page_number = db.Column(db.Integer, nullable=True)
    billing_date = db.Column(db.DateTime(timezone=True), nullable=False)
    photo_url = db.Column(db.String(512), nullable=True)

    def recompute_total_rate(self) -> None:
        self.total_rate = (self.cost_rate or 0) + (self.cgst or 0) + (self.sgst or 0)

    def to_dict(self) -> dict:
        data = self._permission_fields()
        data.update({
            "article_name": self.article_name,
            "entry_date": to_utc_z(self.entry_date),
            "company_name": self.company_name,
            "address": self.address,
            "product_details": self.product_details,
            "voucher_or_bill_number": self.voucher_or_bill_number,
            "cost_rate": self.cost_rate,
            "cgst": self.cgst,
            "sgst": self.sgst,
            "total_rate": self.total_rate,
            "receipt_number": self.receipt_number,
            "page_number": self.page_number,
            "billing_date": to_utc_z(self.billing_date),
            "photo_url": self.photo_url,
        })
        return data
