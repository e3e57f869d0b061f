# Overview: Service-layer operations for owned documents (invoices, purchase orders, stock register entries).

from __future__ import annotations

from datetime import datetime
from typing import Optional

from flask import current_app
from sqlalchemy.exc import IntegrityError
from werkzeug.datastructures import FileStorage

from ..extensions import db
from ..pagination import normalize_page, offset_for, page_response
from ..validation import ConflictError, ForbiddenError, ValidationError
from app.time_utils import utcnow
from . import attachment_service
from . import edit_request_ledger
from .document_registry import DocumentAdapter, get_adapter
from .edit_permission import REASON_NOT_OWNER, EditDecision, can_edit, initial_window


MAX_ID_LENGTH = 191


def _require_view_access(document, acting_user) -> None:
    if not acting_user.is_admin and document.owner_id != acting_user.id:
        raise ForbiddenError("Not authorized")


def _normalize_id(raw) -> str:
    document_id = str(raw).strip() if raw is not None else ""
    if not document_id:
        raise ValidationError("id is required")
    if len(document_id) > MAX_ID_LENGTH:
        raise ValidationError(f"id exceeds max length {MAX_ID_LENGTH}")
    return document_id


def _apply_line_items(adapter: DocumentAdapter, document, payload: dict, *, creating: bool) -> None:
    spec = adapter.line_items
    if spec is None:
        return
    if spec.relationship not in payload:
        if creating:
            setattr(document, spec.relationship, [])
        return
    raw = payload.get(spec.relationship)
    setattr(document, spec.relationship, adapter.build_line_items(raw if raw is not None else []))


def _recompute(document) -> None:
    recompute = getattr(document, "recompute_total_rate", None)
    if recompute is not None:
        recompute()


# =============================================================================
# CREATE
# =============================================================================

def create_document(
    *,
    document_type: str,
    payload: dict,
    owner,
    attachment: Optional[FileStorage] = None,
    now: Optional[datetime] = None,
):
    """
    Create a document owned by owner.

    allow_editing / editable_until are never taken from the payload: a new
    document starts inside its initial edit window with no grant.

    Raises:
        ValidationError: missing id, missing/malformed fields, bad attachment
        ConflictError: the id is already used for this document type
    """
    now = now or utcnow()
    adapter = get_adapter(document_type)
    if payload is None or not isinstance(payload, dict):
        raise ValidationError("Invalid JSON payload")

    document_id = _normalize_id(payload.get("id"))
    if adapter.exists(document_id):
        raise ConflictError(f"A {adapter.label.lower()} with this ID already exists")

    patch = adapter.validate(payload, partial=False)

    document = adapter.model(
        id=document_id,
        owner_id=owner.id,
        allow_editing=False,
        editable_until=None,
        created_at=now,
        updated_at=now,
        **patch,
    )
    _apply_line_items(adapter, document, payload, creating=True)
    _recompute(document)

    stored = attachment_service.save_upload(attachment, prefix=adapter.search_type)
    if stored:
        setattr(document, adapter.attachment_column, stored)

    db.session.add(document)
    try:
        db.session.commit()
    except IntegrityError:
        db.session.rollback()
        attachment_service.release(stored)
        raise ConflictError(f"A {adapter.label.lower()} with this ID already exists")
    except Exception:
        db.session.rollback()
        attachment_service.release(stored)
        raise

    current_app.logger.info("%s %s created by user %s", adapter.document_type, document.id, owner.id)
    return document


# =============================================================================
# READ
# =============================================================================

def get_document(*, document_type: str, document_id: str, acting_user):
    adapter = get_adapter(document_type)
    document = adapter.get_or_404(document_id)
    _require_view_access(document, acting_user)
    return document


def list_documents(
    *,
    document_type: str,
    acting_user,
    page: Optional[int] = None,
    limit: Optional[int] = None,
) -> dict:
    """Admins see every document, users only their own. Newest first."""
    adapter = get_adapter(document_type)
    page, limit = normalize_page(page, limit)

    query = db.session.query(adapter.model)
    if not acting_user.is_admin:
        query = query.filter(adapter.model.owner_id == acting_user.id)

    total = query.count()
    rows = (
        query.order_by(adapter.model.created_at.desc(), adapter.model.id.asc())
        .offset(offset_for(page, limit))
        .limit(limit)
        .all()
    )
    return page_response([d.to_dict() for d in rows], page=page, limit=limit, total=total)


def check_edit_permission(
    *,
    document_type: str,
    document_id: str,
    acting_user,
    now: Optional[datetime] = None,
) -> EditDecision:
    adapter = get_adapter(document_type)
    document = adapter.get_or_404(document_id)
    return can_edit(document, acting_user, now or utcnow(), initial_window=initial_window())


# =============================================================================
# UPDATE
# =============================================================================

def update_document(
    *,
    document_type: str,
    document_id: str,
    payload: dict,
    acting_user,
    attachment: Optional[FileStorage] = None,
    now: Optional[datetime] = None,
):
    """
    Overwrite business fields (and line items when supplied).

    Edit permission is re-evaluated on every call. A replaced attachment is
    released only after the new record has been committed.

    Raises:
        NotFoundError: document does not exist
        ForbiddenError: edit denied; details carry can_request_permission
        ValidationError: malformed fields or attachment
    """
    now = now or utcnow()
    adapter = get_adapter(document_type)
    document = adapter.get_or_404(document_id)

    decision = can_edit(document, acting_user, now, initial_window=initial_window())
    if not decision.allowed:
        if decision.reason == REASON_NOT_OWNER:
            raise ForbiddenError("Not authorized", details={"can_request_permission": False})
        raise ForbiddenError(
            "Edit not allowed. Please request permission from admin.",
            details={
                "can_request_permission": decision.needs_permission_request,
                "reason": decision.reason,
            },
        )

    if payload is None or not isinstance(payload, dict):
        raise ValidationError("Invalid JSON payload")
    patch = adapter.validate(payload, partial=True)

    stored = None
    replaced = None
    try:
        for key, value in patch.items():
            setattr(document, key, value)
        _apply_line_items(adapter, document, payload, creating=False)
        _recompute(document)

        stored = attachment_service.save_upload(attachment, prefix=adapter.search_type)
        if stored:
            replaced = getattr(document, adapter.attachment_column)
            setattr(document, adapter.attachment_column, stored)

        document.updated_at = now
        db.session.commit()
    except Exception:
        db.session.rollback()
        attachment_service.release(stored)
        raise

    attachment_service.release(replaced)
    current_app.logger.info("%s %s updated by user %s", adapter.document_type, document.id, acting_user.id)
    return document


# =============================================================================
# DELETE
# =============================================================================

def delete_document(*, document_type: str, document_id: str, acting_user) -> None:
    """
    Owner or admin only. Line items go with the ORM cascade; edit requests
    referencing the document are removed in the same transaction.
    """
    adapter = get_adapter(document_type)
    document = adapter.get_or_404(document_id)
    _require_view_access(document, acting_user)

    stored = getattr(document, adapter.attachment_column)
    try:
        edit_request_ledger.delete_for_document(adapter.document_type, document.id)
        db.session.delete(document)
        db.session.commit()
    except Exception:
        db.session.rollback()
        raise

    attachment_service.release(stored)
    current_app.logger.info("%s %s deleted by user %s", adapter.document_type, document_id, acting_user.id)
