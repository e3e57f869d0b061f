"""
Edit request workflow tests.

Verifies:
- One PENDING request per document (service check and unique index)
- Approval writes the grant and the APPROVED status together
- APPROVED / REJECTED are terminal
- Owner-only filing, admin-only resolution
- Notifications go out after commit and never fail the workflow
"""

import threading
from datetime import timedelta

import pytest
from sqlalchemy.orm.exc import StaleDataError

from app import create_app
from app.extensions import db
from app.models import (
    DOC_INVOICE,
    DOC_STOCK_REGISTER,
    EditRequest,
    Invoice,
    ROLE_ADMIN,
    STATUS_APPROVED,
    STATUS_PENDING,
    STATUS_REJECTED,
    User,
)
from app.services import document_service
from app.services import edit_request_ledger
from app.services import edit_request_service
from app.services.concurrency import run_with_retry
from app.services.document_registry import DocumentAdapter
from app.services.notification_service import (
    ADMIN_CHANNEL,
    EVENT_EDIT_REQUEST_UPDATE,
    EVENT_NEW_EDIT_REQUEST,
    NotificationError,
    Notifier,
    edit_request_channel,
)
from app.time_utils import utcnow
from app.validation import ConflictError, ForbiddenError, NotFoundError, ValidationError

from conftest import create_aged, invoice_payload, make_user, stock_payload


class FailingNotifier(Notifier):
    def __init__(self):
        self.attempts = 0

    def publish(self, channel, event, payload):
        self.attempts += 1
        raise NotificationError("transport down")


@pytest.fixture
def stale_invoice(owner):
    """Invoice created 25 hours ago: outside the initial window."""
    return create_aged(DOC_INVOICE, invoice_payload("INV-100"), owner, timedelta(hours=25))


def _file(owner, document_id="INV-100", message="please fix typo", notifier=None, document_type=DOC_INVOICE):
    return edit_request_service.create_request(
        document_type=document_type,
        document_id=document_id,
        requester=owner,
        message=message,
        notifier=notifier,
    )


# =============================================================================
# CREATE
# =============================================================================


class TestCreateRequest:

    def test_creates_pending_and_notifies_admins(self, owner, stale_invoice, notifier):
        edit_request = _file(owner, notifier=notifier)

        assert edit_request.status == STATUS_PENDING
        assert edit_request.document_type == DOC_INVOICE
        assert edit_request.requested_by_id == owner.id
        assert edit_request.request_message == "please fix typo"

        events = notifier.on_channel(ADMIN_CHANNEL)
        assert len(events) == 1
        _, event, payload = events[0]
        assert event == EVENT_NEW_EDIT_REQUEST
        assert payload["edit_request_id"] == edit_request.id
        assert payload["document_id"] == "INV-100"
        assert payload["requested_by"] == "owner"

    def test_second_pending_request_conflicts(self, owner, stale_invoice):
        _file(owner)
        with pytest.raises(ConflictError):
            _file(owner, message="again")
        assert db.session.query(EditRequest).count() == 1

    def test_non_owner_forbidden_and_nothing_persisted(self, other_user, stale_invoice):
        with pytest.raises(ForbiddenError):
            _file(other_user)
        assert db.session.query(EditRequest).count() == 0

    def test_blank_message_rejected(self, owner, stale_invoice):
        with pytest.raises(ValidationError):
            _file(owner, message="   ")

    def test_unknown_document(self, owner):
        with pytest.raises(NotFoundError):
            _file(owner, document_id="NOPE")

    def test_inside_initial_window_needs_no_request(self, owner):
        document_service.create_document(document_type=DOC_INVOICE, payload=invoice_payload("INV-NEW"), owner=owner)
        with pytest.raises(ValidationError, match="initial edit window"):
            _file(owner, document_id="INV-NEW")

    def test_request_allowed_while_earlier_grant_is_live(self, owner, admin, stale_invoice):
        first = _file(owner)
        edit_request_service.approve_request(request_id=first.id, admin=admin, response_message="ok")
        invoice = db.session.get(Invoice, "INV-100")
        assert invoice.allow_editing is True
        assert invoice.editable_until > utcnow()

        second = _file(owner, message="more")
        assert second.status == STATUS_PENDING
        assert second.id != first.id

    def test_admin_owner_can_file_after_window(self, admin):
        create_aged(DOC_INVOICE, invoice_payload("INV-ADM"), admin, timedelta(hours=25))
        edit_request = _file(admin, document_id="INV-ADM")
        assert edit_request.status == STATUS_PENDING

    def test_unique_index_rejects_racing_insert(self, owner, stale_invoice):
        now = utcnow()
        edit_request_ledger.insert_pending(
            document_type=DOC_INVOICE, document_id="INV-100",
            requested_by_id=owner.id, request_message="one", now=now,
        )
        db.session.commit()
        with pytest.raises(ConflictError):
            edit_request_ledger.insert_pending(
                document_type=DOC_INVOICE, document_id="INV-100",
                requested_by_id=owner.id, request_message="two", now=now,
            )

    def test_same_id_on_other_type_is_independent(self, owner, stale_invoice):
        create_aged(DOC_STOCK_REGISTER, stock_payload("INV-100"), owner, timedelta(hours=30))
        _file(owner)
        second = _file(owner, document_type=DOC_STOCK_REGISTER)
        assert second.status == STATUS_PENDING


# =============================================================================
# APPROVE / REJECT
# =============================================================================


class TestResolve:

    def test_approve_opens_grant_atomically(self, owner, admin, stale_invoice, notifier):
        edit_request = _file(owner)
        approved_at = utcnow()

        result = edit_request_service.approve_request(
            request_id=edit_request.id, admin=admin, response_message="ok",
            notifier=notifier, now=approved_at,
        )

        db.session.expire_all()
        invoice = db.session.get(Invoice, "INV-100")
        stored = db.session.get(EditRequest, result.id)
        assert stored.status == STATUS_APPROVED
        assert stored.admin_user_id == admin.id
        assert stored.response_message == "ok"
        assert stored.resolved_at == approved_at
        assert invoice.allow_editing is True
        assert invoice.editable_until == approved_at + timedelta(hours=24)

        events = notifier.on_channel(edit_request_channel(edit_request.id))
        assert len(events) == 1
        assert events[0][1] == EVENT_EDIT_REQUEST_UPDATE
        assert events[0][2]["status"] == STATUS_APPROVED

    def test_approve_without_message(self, owner, admin, stale_invoice):
        edit_request = _file(owner)
        result = edit_request_service.approve_request(request_id=edit_request.id, admin=admin)
        assert result.status == STATUS_APPROVED
        assert result.response_message is None

    def test_reject_leaves_document_untouched(self, owner, admin, stale_invoice, notifier):
        edit_request = _file(owner)
        result = edit_request_service.reject_request(
            request_id=edit_request.id, admin=admin,
            response_message="insufficient detail", notifier=notifier,
        )

        db.session.expire_all()
        invoice = db.session.get(Invoice, "INV-100")
        assert result.status == STATUS_REJECTED
        assert result.response_message == "insufficient detail"
        assert invoice.allow_editing is False
        assert invoice.editable_until is None
        assert notifier.on_channel(edit_request_channel(edit_request.id))[0][2]["status"] == STATUS_REJECTED

    def test_reject_requires_message(self, owner, admin, stale_invoice):
        edit_request = _file(owner)
        with pytest.raises(ValidationError):
            edit_request_service.reject_request(request_id=edit_request.id, admin=admin, response_message="")
        assert db.session.get(EditRequest, edit_request.id).status == STATUS_PENDING

    @pytest.mark.parametrize("first", ["approve", "reject"])
    def test_resolved_requests_are_terminal(self, owner, admin, stale_invoice, first):
        edit_request = _file(owner)
        if first == "approve":
            edit_request_service.approve_request(request_id=edit_request.id, admin=admin, response_message="ok")
        else:
            edit_request_service.reject_request(request_id=edit_request.id, admin=admin, response_message="no")

        before = db.session.get(EditRequest, edit_request.id).to_dict()

        with pytest.raises(ConflictError):
            edit_request_service.approve_request(request_id=edit_request.id, admin=admin, response_message="again")
        with pytest.raises(ConflictError):
            edit_request_service.reject_request(request_id=edit_request.id, admin=admin, response_message="again")

        db.session.expire_all()
        assert db.session.get(EditRequest, edit_request.id).to_dict() == before

    @pytest.mark.parametrize("resolution", ["approve", "reject"])
    def test_new_request_allowed_after_resolution(self, owner, admin, stale_invoice, resolution):
        edit_request = _file(owner)
        if resolution == "approve":
            edit_request_service.approve_request(request_id=edit_request.id, admin=admin, response_message="ok")
        else:
            edit_request_service.reject_request(request_id=edit_request.id, admin=admin, response_message="no")

        second = _file(owner, message="second try")
        assert second.id != edit_request.id
        assert second.status == STATUS_PENDING

    def test_non_admin_cannot_resolve(self, owner, stale_invoice):
        edit_request = _file(owner)
        with pytest.raises(ForbiddenError):
            edit_request_service.approve_request(request_id=edit_request.id, admin=owner)
        with pytest.raises(ForbiddenError):
            edit_request_service.reject_request(request_id=edit_request.id, admin=owner, response_message="no")

    def test_unknown_request(self, admin):
        with pytest.raises(NotFoundError):
            edit_request_service.approve_request(request_id=424242, admin=admin)

    def test_approve_fails_when_document_was_deleted(self, owner, admin, stale_invoice):
        edit_request = _file(owner)
        # Bypass delete_document, which would also remove the request
        db.session.delete(db.session.get(Invoice, "INV-100"))
        db.session.commit()

        with pytest.raises(NotFoundError):
            edit_request_service.approve_request(request_id=edit_request.id, admin=admin)
        assert db.session.get(EditRequest, edit_request.id).status == STATUS_PENDING


# =============================================================================
# NOTIFICATION FAILURES
# =============================================================================


class TestNotificationFailures:

    def test_create_succeeds_when_publish_fails(self, owner, stale_invoice):
        failing = FailingNotifier()
        edit_request = _file(owner, notifier=failing)
        assert failing.attempts == 1
        assert db.session.get(EditRequest, edit_request.id).status == STATUS_PENDING

    def test_approve_commits_when_publish_fails(self, owner, admin, stale_invoice):
        edit_request = _file(owner)
        failing = FailingNotifier()
        edit_request_service.approve_request(request_id=edit_request.id, admin=admin, notifier=failing)

        db.session.expire_all()
        assert failing.attempts == 1
        assert db.session.get(EditRequest, edit_request.id).status == STATUS_APPROVED
        assert db.session.get(Invoice, "INV-100").allow_editing is True


# =============================================================================
# END-TO-END SCENARIOS
# =============================================================================


class TestScenarios:

    def test_denied_then_approved_then_allowed(self, owner, admin, stale_invoice):
        with pytest.raises(ForbiddenError) as denied:
            document_service.update_document(
                document_type=DOC_INVOICE, document_id="INV-100",
                payload={"company_name": "Typo Fixed"}, acting_user=owner,
            )
        assert denied.value.details["can_request_permission"] is True

        edit_request = _file(owner)
        approved_at = utcnow()
        edit_request_service.approve_request(
            request_id=edit_request.id, admin=admin, response_message="ok", now=approved_at,
        )

        updated = document_service.update_document(
            document_type=DOC_INVOICE, document_id="INV-100",
            payload={"company_name": "Typo Fixed"}, acting_user=owner,
            now=approved_at + timedelta(hours=1),
        )
        assert updated.company_name == "Typo Fixed"

    def test_denied_then_rejected_stays_denied(self, owner, admin, stale_invoice):
        edit_request = _file(owner)
        edit_request_service.reject_request(
            request_id=edit_request.id, admin=admin, response_message="insufficient detail",
        )
        with pytest.raises(ForbiddenError):
            document_service.update_document(
                document_type=DOC_INVOICE, document_id="INV-100",
                payload={"company_name": "Nope"}, acting_user=owner,
            )


# =============================================================================
# LISTING
# =============================================================================


class TestListing:

    def test_defaults_to_pending_and_embeds_document(self, owner, admin, stale_invoice):
        create_aged(DOC_INVOICE, invoice_payload("INV-200"), owner, timedelta(hours=48))
        first = _file(owner)
        second = _file(owner, document_id="INV-200")
        edit_request_service.reject_request(request_id=first.id, admin=admin, response_message="no")

        result = edit_request_service.list_requests()
        assert result["status"] == STATUS_PENDING
        assert [r["id"] for r in result["items"]] == [second.id]
        assert result["items"][0]["document"]["id"] == "INV-200"
        assert result["items"][0]["requested_by"]["username"] == "owner"

        everything = edit_request_service.list_requests(status="all")
        assert everything["pagination"]["total"] == 2

    def test_invalid_status_filter(self, app):
        with pytest.raises(ValidationError):
            edit_request_service.list_requests(status="DONE")


# =============================================================================
# RETRY
# =============================================================================


def test_run_with_retry_reruns_after_stale_data(app):
    calls = []

    def op():
        calls.append(1)
        if len(calls) == 1:
            raise StaleDataError("version mismatch")
        return "done"

    assert run_with_retry(op, backoff_base=0) == "done"
    assert len(calls) == 2


def test_run_with_retry_does_not_retry_domain_errors(app):
    calls = []

    def op():
        calls.append(1)
        raise ConflictError("already approved")

    with pytest.raises(ConflictError):
        run_with_retry(op, backoff_base=0)
    assert len(calls) == 1


def test_concurrent_approvals_exactly_one_wins(tmp_path, monkeypatch):
    """Two admins approve the same request from separate sessions at once."""
    race_app = create_app({
        'TESTING': True,
        'SQLALCHEMY_DATABASE_URI': f"sqlite:///{tmp_path / 'race.db'}",
        'BCRYPT_ROUNDS': 4,
        'NOTIFIER_BACKEND': 'null',
        'UPLOAD_FOLDER': str(tmp_path / 'uploads'),
    })
    with race_app.app_context():
        db.create_all()
        owner = make_user("owner")
        admin_ids = [make_user("admin-a", ROLE_ADMIN).id, make_user("admin-b", ROLE_ADMIN).id]
        create_aged(DOC_INVOICE, invoice_payload("INV-100"), owner, timedelta(hours=25))
        request_id = _file(owner).id
        db.session.remove()

    # Both resolvers have read the request as PENDING before either writes
    barrier = threading.Barrier(2, timeout=10)
    original_apply_grant = DocumentAdapter.apply_grant

    def apply_grant_in_lockstep(self, document_id, editable_until):
        barrier.wait()
        return original_apply_grant(self, document_id, editable_until)

    monkeypatch.setattr(DocumentAdapter, "apply_grant", apply_grant_in_lockstep)

    results = []

    def approve(admin_id):
        with race_app.app_context():
            admin = db.session.get(User, admin_id)
            try:
                edit_request_service.approve_request(request_id=request_id, admin=admin, response_message="ok")
                results.append("ok")
            except ConflictError:
                results.append("conflict")
            except Exception as exc:
                results.append(exc.__class__.__name__)

    threads = [threading.Thread(target=approve, args=(admin_id,)) for admin_id in admin_ids]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join(timeout=30)

    assert sorted(results) == ["conflict", "ok"]

    with race_app.app_context():
        edit_request = db.session.get(EditRequest, request_id)
        assert edit_request.status == STATUS_APPROVED
        assert edit_request.version_id == 2
        assert edit_request.admin_user_id in admin_ids
        assert db.session.get(Invoice, "INV-100").allow_editing is True
        db.session.remove()
        db.drop_all()
