# Overview: Persistence helpers for EditRequest rows (insert, lookup, listing, cascade delete).

from __future__ import annotations

from typing import Optional

from sqlalchemy.exc import IntegrityError

from ..extensions import db
from ..models import EditRequest, STATUS_PENDING, VALID_STATUSES
from ..validation import ConflictError, ValidationError
from .concurrency import lock_for_update

STATUS_ALL = "ALL"


def insert_pending(
    *,
    document_type: str,
    document_id: str,
    requested_by_id: int,
    request_message: str,
    now,
) -> EditRequest:
    """
    Add a PENDING request and flush.

    The partial unique index rejects a second PENDING row for the same
    document even when two inserts race past the service-level check.
    """
    edit_request = EditRequest(
        status=STATUS_PENDING,
        document_type=document_type,
        document_id=document_id,
        requested_by_id=requested_by_id,
        request_message=request_message,
        created_at=now,
        updated_at=now,
    )
    db.session.add(edit_request)
    try:
        db.session.flush()
    except IntegrityError:
        db.session.rollback()
        raise ConflictError("A pending edit request already exists for this document")
    return edit_request


def get(request_id: int) -> Optional[EditRequest]:
    return db.session.get(EditRequest, request_id)


def get_for_update(request_id: int) -> Optional[EditRequest]:
    query = db.session.query(EditRequest).filter(EditRequest.id == request_id).populate_existing()
    return lock_for_update(query).first()


def find_pending(document_type: str, document_id: str) -> Optional[EditRequest]:
    return (
        db.session.query(EditRequest)
        .filter_by(document_type=document_type, document_id=document_id, status=STATUS_PENDING)
        .first()
    )


def normalize_status(status: Optional[str]) -> str:
    value = (status or STATUS_PENDING).strip().upper()
    if value != STATUS_ALL and value not in VALID_STATUSES:
        raise ValidationError(
            f"Invalid status filter. Must be one of: {', '.join(VALID_STATUSES + (STATUS_ALL,))}"
        )
    return value


def list_requests(*, status: str, offset: int, limit: int) -> tuple[list[EditRequest], int]:
    """Newest first. status=ALL disables the filter."""
    query = db.session.query(EditRequest)
    if status != STATUS_ALL:
        query = query.filter(EditRequest.status == status)
    total = query.count()
    rows = (
        query.order_by(EditRequest.created_at.desc(), EditRequest.id.desc())
        .offset(offset)
        .limit(limit)
        .all()
    )
    return rows, total


def count_pending() -> int:
    return db.session.query(EditRequest).filter(EditRequest.status == STATUS_PENDING).count()


def delete_for_document(document_type: str, document_id: str) -> int:
    """Remove every request that references a document. Caller commits."""
    return (
        db.session.query(EditRequest)
        .filter_by(document_type=document_type, document_id=document_id)
        .delete(synchronize_session=False)
    )
