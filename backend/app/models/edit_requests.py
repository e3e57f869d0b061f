from __future__ import annotations

from ..extensions import db
from app.time_utils import to_utc_z, utcnow


STATUS_PENDING = "PENDING"
STATUS_APPROVED = "APPROVED"
STATUS_REJECTED = "REJECTED"
VALID_STATUSES = (STATUS_PENDING, STATUS_APPROVED, STATUS_REJECTED)

DOC_INVOICE = "INVOICE"
DOC_PURCHASE_ORDER = "PURCHASE_ORDER"
DOC_STOCK_REGISTER = "STOCK_REGISTER"
VALID_DOCUMENT_TYPES = (DOC_INVOICE, DOC_PURCHASE_ORDER, DOC_STOCK_REGISTER)


class EditRequest(db.Model):
    """
    Owner's request for renewed edit permission on one document.

    LIFECYCLE:
    - PENDING -> APPROVED (terminal, grants allow_editing on the document)
    - PENDING -> REJECTED (terminal, document untouched)

    The document reference is a tagged union (document_type, document_id).
    At most one PENDING request may exist per document; the partial unique
    index below backs the service-level check against racing inserts.
    version_id_col makes concurrent resolutions fail with StaleDataError.
    """
    __tablename__ = "edit_requests"
    __table_args__ = (
        db.Index(
            "uq_edit_requests_one_pending",
            "document_type",
            "document_id",
            unique=True,
            sqlite_where=db.text("status = 'PENDING'"),
            postgresql_where=db.text("status = 'PENDING'"),
        ),
        db.Index("ix_edit_requests_status_created", "status", "created_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)

    status = db.Column(
        db.Enum(*VALID_STATUSES, name="edit_request_status", native_enum=False),
        nullable=False,
        default=STATUS_PENDING,
    )
    request_message = db.Column(db.Text, nullable=False)
    response_message = db.Column(db.Text, nullable=True)

    document_type = db.Column(
        db.Enum(*VALID_DOCUMENT_TYPES, name="edit_request_document_type", native_enum=False),
        nullable=False,
    )
    document_id = db.Column(db.String(191), nullable=False, index=True)

    requested_by_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False, index=True)
    admin_user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow)
    resolved_at = db.Column(db.DateTime(timezone=True), nullable=True)

    version_id = db.Column(db.Integer, nullable=False, default=1)

    requested_by = db.relationship("User", foreign_keys=[requested_by_id])
    admin_user = db.relationship("User", foreign_keys=[admin_user_id])

    __mapper_args__ = {"version_id_col": version_id}

    @property
    def is_pending(self) -> bool:
        return self.status == STATUS_PENDING

    def to_dict(self, document_summary: dict | None = None) -> dict:
        return {
            "id": self.id,
            "status": self.status,
            "request_message": self.request_message,
            "response_message": self.response_message,
            "document_type": self.document_type,
            "document_id": self.document_id,
            "document": document_summary,
            "requested_by_id": self.requested_by_id,
            "requested_by": self.requested_by.to_ref() if self.requested_by else None,
            "admin_user_id": self.admin_user_id,
            "admin_user": self.admin_user.to_ref() if self.admin_user else None,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
            "resolved_at": to_utc_z(self.resolved_at),
        }
