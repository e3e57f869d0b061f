"""
Edit permission decision tests.

Verifies:
- Admins may always edit
- Non-owners are denied
- The initial window and grants both end strictly (at the boundary edit is denied)
- needs_permission_request is only set when no grant was ever issued
"""

from datetime import datetime, timedelta
from types import SimpleNamespace

import pytest

from app.services.edit_permission import (
    REASON_GRANT_EXPIRED,
    REASON_NOT_OWNER,
    REASON_WINDOW_CLOSED,
    can_edit,
)


WINDOW = timedelta(hours=24)
CREATED = datetime(2025, 1, 1, 9, 0, 0)


def _doc(allow_editing=False, editable_until=None, owner_id=1):
    return SimpleNamespace(
        owner_id=owner_id,
        created_at=CREATED,
        allow_editing=allow_editing,
        editable_until=editable_until,
    )


def _user(user_id=1, is_admin=False):
    return SimpleNamespace(id=user_id, is_admin=is_admin)


class TestRoles:

    def test_admin_always_allowed(self):
        decision = can_edit(_doc(owner_id=7), _user(99, is_admin=True), CREATED + timedelta(days=400), initial_window=WINDOW)
        assert decision.allowed
        assert decision.reason is None

    def test_non_owner_denied_even_inside_window(self):
        decision = can_edit(_doc(owner_id=7), _user(8), CREATED + timedelta(minutes=1), initial_window=WINDOW)
        assert not decision.allowed
        assert decision.reason == REASON_NOT_OWNER
        assert not decision.needs_permission_request


class TestInitialWindow:

    def test_owner_allowed_inside_window(self):
        decision = can_edit(_doc(), _user(), CREATED + timedelta(hours=23, minutes=59), initial_window=WINDOW)
        assert decision.allowed
        assert decision.within_initial_window
        assert not decision.has_valid_grant

    def test_window_closes_exactly_at_boundary(self):
        decision = can_edit(_doc(), _user(), CREATED + WINDOW, initial_window=WINDOW)
        assert not decision.allowed
        assert decision.reason == REASON_WINDOW_CLOSED
        assert decision.needs_permission_request

    def test_one_microsecond_before_boundary_is_allowed(self):
        decision = can_edit(_doc(), _user(), CREATED + WINDOW - timedelta(microseconds=1), initial_window=WINDOW)
        assert decision.allowed


class TestGrant:

    def test_active_grant_allows_after_window(self):
        now = CREATED + timedelta(days=3)
        doc = _doc(allow_editing=True, editable_until=now + timedelta(hours=1))
        decision = can_edit(doc, _user(), now, initial_window=WINDOW)
        assert decision.allowed
        assert decision.has_valid_grant
        assert not decision.within_initial_window

    def test_grant_without_expiry_allows(self):
        doc = _doc(allow_editing=True, editable_until=None)
        decision = can_edit(doc, _user(), CREATED + timedelta(days=30), initial_window=WINDOW)
        assert decision.allowed
        assert decision.has_valid_grant

    def test_grant_ends_exactly_at_editable_until(self):
        until = CREATED + timedelta(days=3)
        doc = _doc(allow_editing=True, editable_until=until)
        decision = can_edit(doc, _user(), until, initial_window=WINDOW)
        assert not decision.allowed
        assert decision.reason == REASON_GRANT_EXPIRED
        assert not decision.needs_permission_request

    def test_editable_until_ignored_without_allow_editing(self):
        now = CREATED + timedelta(days=3)
        doc = _doc(allow_editing=False, editable_until=now + timedelta(days=1))
        decision = can_edit(doc, _user(), now, initial_window=WINDOW)
        assert not decision.allowed
        assert decision.needs_permission_request

    @pytest.mark.parametrize("offset_minutes,expected", [(-1, True), (0, False), (1, False)])
    def test_grant_boundary(self, offset_minutes, expected):
        until = CREATED + timedelta(days=5)
        doc = _doc(allow_editing=True, editable_until=until)
        decision = can_edit(doc, _user(), until + timedelta(minutes=offset_minutes), initial_window=WINDOW)
        assert decision.allowed is expected


def test_aware_and_naive_datetimes_compare_in_utc():
    from datetime import timezone
    now = (CREATED + timedelta(hours=1)).replace(tzinfo=timezone.utc)
    decision = can_edit(_doc(), _user(), now, initial_window=WINDOW)
    assert decision.allowed
    assert decision.within_initial_window
