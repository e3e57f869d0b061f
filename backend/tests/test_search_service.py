"""
Search, export, id validation and saved search tests.
"""

import csv
import io
from datetime import timedelta

import pytest

from app.models import DOC_INVOICE, DOC_PURCHASE_ORDER, DOC_STOCK_REGISTER
from app.services import saved_search_service
from app.services import search_service
from app.validation import ForbiddenError, NotFoundError, ValidationError

from conftest import create_aged, invoice_payload, purchase_order_payload, stock_payload


@pytest.fixture
def corpus(owner, other_user):
    """A few documents of every type, mostly owned by `owner`."""
    create_aged(DOC_INVOICE, invoice_payload("INV-1"), owner, timedelta(days=3))
    create_aged(
        DOC_INVOICE,
        invoice_payload(
            "INV-2",
            vendor_name="HP World",
            purchase_date="2025-04-30T18:00:00",
            total_amount=90,
            products=[{"product_name": "LaserJet", "serial_number": "HP-50%", "quantity": 1, "price": 90}],
        ),
        owner,
        timedelta(days=2),
    )
    create_aged(DOC_INVOICE, invoice_payload("INV-3", vendor_name="Dell Direct"), other_user, timedelta(days=1))
    create_aged(DOC_PURCHASE_ORDER, purchase_order_payload(vendor_name="Dell Stationers"), owner, timedelta(hours=5))
    create_aged(DOC_STOCK_REGISTER, stock_payload("STK-1", article_name="Dell Monitor"), owner, timedelta(hours=1))
    create_aged(DOC_STOCK_REGISTER, stock_payload("STK-2", article_name="Chair", cost_rate=40), owner, timedelta(hours=2))


class TestBasicSearch:

    def test_requires_query(self, owner):
        with pytest.raises(ValidationError):
            search_service.basic_search(query_text="  ", acting_user=owner)

    def test_all_types_newest_first(self, owner, corpus):
        result = search_service.basic_search(query_text="dell", acting_user=owner)
        assert [(d["document_type"], d["id"]) for d in result["items"]] == [
            ("stockRegister", "STK-1"),
            ("purchaseOrder", "PO-001"),
            ("invoice", "INV-1"),
        ]
        assert result["search_type"] == "all"

    def test_admin_sees_everyone(self, admin, corpus):
        result = search_service.basic_search(query_text="dell", search_type="invoice", acting_user=admin)
        assert {d["id"] for d in result["items"]} == {"INV-1", "INV-3"}

    def test_matches_line_items(self, owner, corpus):
        result = search_service.basic_search(query_text="laserjet", search_type="invoices", acting_user=owner)
        assert [d["id"] for d in result["items"]] == ["INV-2"]

    def test_wildcards_are_literal(self, owner, corpus):
        result = search_service.basic_search(query_text="50%", acting_user=owner)
        assert [d["id"] for d in result["items"]] == ["INV-2"]
        assert search_service.basic_search(query_text="%", search_type="stockRegister", acting_user=owner)["items"] == []

    def test_unknown_type(self, owner):
        with pytest.raises(ValidationError):
            search_service.basic_search(query_text="x", search_type="receipts", acting_user=owner)


class TestAdvancedSearch:

    def test_invoice_filters(self, owner, corpus):
        result = search_service.advanced_search(
            search_type="invoice",
            params={"vendor_name": "hp", "min_amount": "50", "max_amount": "100"},
            acting_user=owner,
        )
        assert [d["id"] for d in result["items"]] == ["INV-2"]

    def test_date_only_upper_bound_covers_whole_day(self, owner, corpus):
        result = search_service.advanced_search(
            search_type="invoice",
            params={"date_from": "2025-04-30", "date_to": "2025-04-30"},
            acting_user=owner,
        )
        assert [d["id"] for d in result["items"]] == ["INV-2"]

    def test_product_serial_filter(self, owner, corpus):
        result = search_service.advanced_search(
            search_type="invoice", params={"product_serial_number": "sn-1"}, acting_user=owner,
        )
        assert [d["id"] for d in result["items"]] == ["INV-1"]

    def test_purchase_order_item_description(self, owner, corpus):
        result = search_service.advanced_search(
            search_type="purchaseOrder", params={"item_description": "paper"}, acting_user=owner,
        )
        assert result["pagination"]["total"] == 1

    def test_stock_sorting(self, owner, corpus):
        result = search_service.advanced_search(
            search_type="stockRegister",
            params={"sort_by": "cost_rate", "sort_order": "asc"},
            acting_user=owner,
        )
        assert [d["id"] for d in result["items"]] == ["STK-2", "STK-1"]

    def test_stock_cost_rate_range(self, owner, corpus):
        result = search_service.advanced_search(
            search_type="stock-register", params={"min_cost_rate": "50"}, acting_user=owner,
        )
        assert [d["id"] for d in result["items"]] == ["STK-1"]

    def test_bad_number(self, owner):
        with pytest.raises(ValidationError):
            search_service.advanced_search(search_type="invoice", params={"min_amount": "lots"}, acting_user=owner)

    def test_bad_date(self, owner):
        with pytest.raises(ValidationError):
            search_service.advanced_search(search_type="invoice", params={"date_from": "yesterday"}, acting_user=owner)


class TestExport:

    def test_invoice_csv(self, owner, corpus):
        filename, content, count = search_service.export_csv(
            search_type="invoice", params={}, acting_user=owner,
        )
        rows = list(csv.reader(io.StringIO(content)))
        assert filename.startswith("invoice_export_") and filename.endswith(".csv")
        assert count == 2
        assert rows[0][0] == "ID"
        assert {r[0] for r in rows[1:]} == {"INV-1", "INV-2"}
        inv2 = next(r for r in rows if r[0] == "INV-2")
        assert inv2[3] == "2025-04-30"
        assert inv2[6] == "LaserJet(SN:HP-50%,Qty:1)"

    def test_empty_export_keeps_header(self, owner):
        _, content, count = search_service.export_csv(search_type="stockRegister", params={}, acting_user=owner)
        assert count == 0
        assert content.strip().split("\n") == [
            "ID,Article Name,Entry Date,Billing Date,Company Name,Voucher/Bill Number,"
            "Cost Rate,CGST,SGST,Total Rate,Receipt Number,Page Number"
        ]

    def test_type_required(self, owner):
        with pytest.raises(ValidationError):
            search_service.export_csv(search_type="", params={}, acting_user=owner)

    def test_export_route(self, client, owner_headers, corpus):
        resp = client.get("/api/search/export?type=purchaseOrder&vendor_name=dell", headers=owner_headers)
        assert resp.status_code == 200
        assert resp.mimetype == "text/csv"
        assert "attachment; filename=purchaseOrder_export_" in resp.headers["Content-Disposition"]
        assert "PO-001" in resp.get_data(as_text=True)


class TestValidateId:

    def test_taken_and_free(self, owner, corpus):
        taken = search_service.validate_unique_id(document_id="INV-1", search_type="invoice")
        assert taken["is_unique"] is False
        free = search_service.validate_unique_id(document_id="INV-1", search_type="stockRegister")
        assert free["is_unique"] is True

    def test_missing_fields(self, app):
        with pytest.raises(ValidationError):
            search_service.validate_unique_id(document_id=" ", search_type="invoice")

    def test_route(self, client, owner_headers, corpus):
        resp = client.post("/api/search/validate-id", json={"id": "PO-001", "type": "purchaseOrder"}, headers=owner_headers)
        assert resp.status_code == 200
        assert resp.get_json()["is_unique"] is False


class TestSavedSearches:

    def _save(self, user, **overrides):
        payload = {"name": "Dell 2025", "document_type": "invoice", "search_params": {"vendor_name": "dell"}}
        payload.update(overrides)
        return saved_search_service.create_saved_search(user=user, payload=payload)

    def test_create_normalizes_type(self, owner):
        saved = self._save(owner)
        assert saved.document_type == DOC_INVOICE
        assert saved.search_params == {"vendor_name": "dell"}

    def test_missing_fields(self, owner):
        with pytest.raises(ValidationError):
            saved_search_service.create_saved_search(user=owner, payload={"name": "x"})

    def test_invalid_type(self, owner):
        with pytest.raises(ValidationError):
            self._save(owner, document_type="RECEIPT")

    def test_params_must_be_object(self, owner):
        with pytest.raises(ValidationError):
            self._save(owner, search_params=["dell"])

    def test_private_to_owner_even_for_admin(self, owner, admin):
        saved = self._save(owner)
        with pytest.raises(ForbiddenError):
            saved_search_service.get_saved_search(saved_search_id=saved.id, user=admin)
        assert saved_search_service.list_saved_searches(user=admin) == []

    def test_list_filter_update_delete(self, owner):
        first = self._save(owner)
        self._save(owner, name="Chairs", document_type="STOCK_REGISTER", search_params={"article_name": "chair"})

        only_stock = saved_search_service.list_saved_searches(user=owner, document_type="stock_register")
        assert [s.name for s in only_stock] == ["Chairs"]

        updated = saved_search_service.update_saved_search(
            saved_search_id=first.id, user=owner, payload={"name": "Dell (all years)"},
        )
        assert updated.name == "Dell (all years)"
        assert updated.search_params == {"vendor_name": "dell"}

        with pytest.raises(ValidationError):
            saved_search_service.update_saved_search(saved_search_id=first.id, user=owner, payload={})

        saved_search_service.delete_saved_search(saved_search_id=first.id, user=owner)
        with pytest.raises(NotFoundError):
            saved_search_service.get_saved_search(saved_search_id=first.id, user=owner)

    def test_routes(self, client, owner_headers):
        resp = client.post(
            "/api/search/saved",
            json={"name": "POs", "document_type": "PURCHASE_ORDER", "search_params": {"vendor_name": "office"}},
            headers=owner_headers,
        )
        assert resp.status_code == 201
        saved_id = resp.get_json()["saved_search"]["id"]

        listing = client.get("/api/search/saved", headers=owner_headers).get_json()
        assert listing["count"] == 1

        resp = client.delete(f"/api/search/saved/{saved_id}", headers=owner_headers)
        assert resp.status_code == 200
        assert client.get(f"/api/search/saved/{saved_id}", headers=owner_headers).status_code == 404
