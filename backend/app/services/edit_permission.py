# Overview: Pure decision function for whether a user may mutate a document right now.

from __future__ import annotations

from dataclasses import asdict, dataclass
from datetime import datetime, timedelta
from typing import Optional

from flask import current_app

from app.time_utils import hours, to_naive_utc


REASON_NOT_OWNER = "not owner"
REASON_WINDOW_CLOSED = "edit window closed"
REASON_GRANT_EXPIRED = "grant expired"


@dataclass(frozen=True)
class EditDecision:
    allowed: bool
    reason: Optional[str] = None
    needs_permission_request: bool = False
    within_initial_window: bool = False
    has_valid_grant: bool = False

    def to_dict(self) -> dict:
        return asdict(self)


def initial_window() -> timedelta:
    return hours(current_app.config.get("INITIAL_EDIT_WINDOW_HOURS", 24))


def grant_duration() -> timedelta:
    return hours(current_app.config.get("EDIT_GRANT_DURATION_HOURS", 24))


def within_initial_window(document, now: datetime, window: timedelta) -> bool:
    return (to_naive_utc(now) - to_naive_utc(document.created_at)) < window


def can_edit(document, acting_user, now: datetime, *, initial_window: timedelta) -> EditDecision:
    """
    Decide whether acting_user may mutate document at instant now.

    RULES (first match wins):
    1. ADMIN role -> allowed
    2. not the owner -> denied ("not owner")
    3. still inside the initial window after creation -> allowed
    4. admin grant active (allow_editing and editable_until unset or in the
       future) -> allowed
    5. otherwise denied; needs_permission_request is True when no grant has
       ever been issued, reason "grant expired" when one lapsed

    Both window comparisons are strict: at exactly created_at + window (or
    exactly editable_until) editing is no longer allowed.

    No I/O, no caching. Callers evaluate this on every mutating call.
    """
    if acting_user.is_admin:
        return EditDecision(allowed=True)

    if acting_user.id != document.owner_id:
        return EditDecision(allowed=False, reason=REASON_NOT_OWNER)

    now = to_naive_utc(now)
    in_window = within_initial_window(document, now, initial_window)

    editable_until = document.editable_until
    if editable_until is not None:
        editable_until = to_naive_utc(editable_until)
    has_valid_grant = bool(document.allow_editing) and (editable_until is None or now < editable_until)

    if in_window or has_valid_grant:
        return EditDecision(
            allowed=True,
            within_initial_window=in_window,
            has_valid_grant=has_valid_grant,
        )

    return EditDecision(
        allowed=False,
        reason=REASON_GRANT_EXPIRED if document.allow_editing else REASON_WINDOW_CLOSED,
        needs_permission_request=not document.allow_editing,
        within_initial_window=False,
        has_valid_grant=False,
    )
