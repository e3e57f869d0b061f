"""
Edit Request Workflow

WHY: Documents are freely editable by their owner only inside the initial
edit window. After that the owner must ask an admin, and the admin's answer
has to reach both the document (the grant) and the request (the audit
record) together.

DESIGN PRINCIPLES:
- One PENDING request per document (service check + partial unique index)
- Approval writes the grant and resolves the request in ONE transaction
- Resolved requests are immutable (APPROVED / REJECTED are terminal)
- Notifications are published only after commit and never fail the call
- The notifier is passed in explicitly; nothing here reaches for globals

LIFECYCLE:
1. Owner files a request (PENDING) -> admins notified
2. Admin approves (APPROVED, document.allow_editing + editable_until)
   or rejects (REJECTED, document untouched) -> requester notified
"""

from __future__ import annotations

from datetime import datetime, timedelta
from typing import Optional

from flask import current_app

from ..extensions import db
from ..models import EditRequest, STATUS_APPROVED, STATUS_REJECTED
from ..pagination import normalize_page, offset_for, page_response
from ..validation import ConflictError, ForbiddenError, NotFoundError, ValidationError, require_message
from app.time_utils import to_utc_z, utcnow
from . import edit_request_ledger as ledger
from .concurrency import run_with_retry
from .document_registry import get_adapter
from .edit_permission import grant_duration, initial_window, within_initial_window
from .notification_service import (
    ADMIN_CHANNEL,
    EVENT_EDIT_REQUEST_UPDATE,
    EVENT_NEW_EDIT_REQUEST,
    Notifier,
    edit_request_channel,
    safe_publish,
)


# =============================================================================
# SERIALIZATION
# =============================================================================

def document_summary(edit_request: EditRequest) -> dict | None:
    adapter = get_adapter(edit_request.document_type)
    document = adapter.get(edit_request.document_id)
    if document is None:
        return None
    return adapter.summary(document)


def serialize(edit_request: EditRequest) -> dict:
    return edit_request.to_dict(document_summary=document_summary(edit_request))


# =============================================================================
# CREATE
# =============================================================================

def create_request(
    *,
    document_type: str,
    document_id: str,
    requester,
    message,
    notifier: Optional[Notifier] = None,
    now: Optional[datetime] = None,
    window: Optional[timedelta] = None,
) -> EditRequest:
    """
    File a request for renewed edit permission.

    Raises:
        ValidationError: blank message, unknown type, or the document is
            still inside its initial edit window
        NotFoundError: document does not exist
        ForbiddenError: requester is not the document owner
        ConflictError: a PENDING request already exists for the document
    """
    now = now or utcnow()
    request_message = require_message(message, "request_message")
    adapter = get_adapter(document_type)

    document = adapter.get_or_404(document_id)
    if requester.id != document.owner_id:
        raise ForbiddenError("Only the document owner can request edit permission")

    # Only the initial window blocks a request; an earlier approval does not.
    if within_initial_window(document, now, window or initial_window()):
        raise ValidationError(
            f"This {adapter.label.lower()} is still within the initial edit window. No permission needed."
        )

    if ledger.find_pending(adapter.document_type, document.id) is not None:
        raise ConflictError("A pending edit request already exists for this document")

    summary = adapter.summary(document)
    edit_request = ledger.insert_pending(
        document_type=adapter.document_type,
        document_id=document.id,
        requested_by_id=requester.id,
        request_message=request_message,
        now=now,
    )
    db.session.commit()

    current_app.logger.info(
        "Edit request %s created for %s %s by user %s",
        edit_request.id, adapter.document_type, document.id, requester.id,
    )

    safe_publish(notifier, ADMIN_CHANNEL, EVENT_NEW_EDIT_REQUEST, {
        "edit_request_id": edit_request.id,
        "document_type": adapter.document_type,
        "document_id": document.id,
        "document": summary,
        "requested_by": requester.username,
        "request_message": request_message,
        "message": f"New edit request from {requester.username} for {summary['description']}",
        "created_at": to_utc_z(edit_request.created_at),
    })
    return edit_request


# =============================================================================
# RESOLVE (APPROVE / REJECT)
# =============================================================================

def _require_admin(admin) -> None:
    if admin is None or not admin.is_admin:
        raise ForbiddenError("Admin access required")


def _load_pending_for_update(request_id: int) -> EditRequest:
    edit_request = ledger.get_for_update(request_id)
    if edit_request is None:
        raise NotFoundError("Edit request not found")
    if not edit_request.is_pending:
        raise ConflictError(f"This request has already been {edit_request.status.lower()}")
    return edit_request


def _publish_update(notifier: Optional[Notifier], edit_request: EditRequest, extra: dict) -> None:
    payload = {
        "edit_request_id": edit_request.id,
        "status": edit_request.status,
        "response_message": edit_request.response_message,
        "document_type": edit_request.document_type,
        "document_id": edit_request.document_id,
        "resolved_at": to_utc_z(edit_request.resolved_at),
    }
    payload.update(extra)
    safe_publish(notifier, edit_request_channel(edit_request.id), EVENT_EDIT_REQUEST_UPDATE, payload)


def approve_request(
    *,
    request_id: int,
    admin,
    response_message=None,
    notifier: Optional[Notifier] = None,
    now: Optional[datetime] = None,
    grant: Optional[timedelta] = None,
) -> EditRequest:
    """
    Approve a PENDING request and open the edit grant on its document.

    ATOMICITY: the request row is locked, the document grant and the request
    resolution are written in one transaction, then committed. A concurrent
    resolver either waits on the lock or loses on version_id; the retry
    re-reads the request and ends in ConflictError.

    Raises:
        ForbiddenError: admin is not an ADMIN
        NotFoundError: request (or its document) does not exist
        ConflictError: request is not PENDING
    """
    _require_admin(admin)
    now = now or utcnow()
    editable_until = now + (grant or grant_duration())
    message = str(response_message).strip() if response_message is not None else None

    def _op() -> EditRequest:
        edit_request = _load_pending_for_update(request_id)
        adapter = get_adapter(edit_request.document_type)
        adapter.apply_grant(edit_request.document_id, editable_until)

        edit_request.status = STATUS_APPROVED
        edit_request.response_message = message or None
        edit_request.admin_user_id = admin.id
        edit_request.resolved_at = now
        edit_request.updated_at = now
        db.session.commit()
        return edit_request

    try:
        edit_request = run_with_retry(_op)
    except Exception:
        db.session.rollback()
        raise

    current_app.logger.info(
        "Edit request %s approved by admin %s; %s %s editable until %s",
        edit_request.id, admin.id, edit_request.document_type, edit_request.document_id,
        to_utc_z(editable_until),
    )
    _publish_update(notifier, edit_request, {
        "editable_until": to_utc_z(editable_until),
        "message": "Your edit request was approved",
    })
    return edit_request


def reject_request(
    *,
    request_id: int,
    admin,
    response_message,
    notifier: Optional[Notifier] = None,
    now: Optional[datetime] = None,
) -> EditRequest:
    """
    Reject a PENDING request. The document is not touched.

    Raises:
        ValidationError: response_message is blank (a reason is required)
        ForbiddenError / NotFoundError / ConflictError: as approve_request
    """
    _require_admin(admin)
    now = now or utcnow()
    message = require_message(response_message, "response_message")

    def _op() -> EditRequest:
        edit_request = _load_pending_for_update(request_id)
        edit_request.status = STATUS_REJECTED
        edit_request.response_message = message
        edit_request.admin_user_id = admin.id
        edit_request.resolved_at = now
        edit_request.updated_at = now
        db.session.commit()
        return edit_request

    try:
        edit_request = run_with_retry(_op)
    except Exception:
        db.session.rollback()
        raise

    current_app.logger.info("Edit request %s rejected by admin %s", edit_request.id, admin.id)
    _publish_update(notifier, edit_request, {"message": "Your edit request was rejected"})
    return edit_request


# =============================================================================
# QUERIES
# =============================================================================

def list_requests(*, status: Optional[str] = None, page: Optional[int] = None, limit: Optional[int] = None) -> dict:
    """Admin listing; status defaults to PENDING, ALL disables the filter."""
    status = ledger.normalize_status(status)
    page, limit = normalize_page(page, limit)
    rows, total = ledger.list_requests(status=status, offset=offset_for(page, limit), limit=limit)
    result = page_response([serialize(r) for r in rows], page=page, limit=limit, total=total)
    result["status"] = status
    return result


def get_request(request_id: int) -> EditRequest:
    edit_request = ledger.get(request_id)
    if edit_request is None:
        raise NotFoundError("Edit request not found")
    return edit_request
