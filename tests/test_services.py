"""DashboardService end to end over the YAML backend."""

from __future__ import annotations

import os
from datetime import date
from decimal import Decimal

import pytest

from conftest import make_client, make_contract, make_labor, make_payment, make_task, make_vendor

from errors import BackendError, FormValidationError, NotFoundError
from listing import ListFilter, SortSpec


@pytest.fixture
def studio(service):
    store = service.store
    ada = store.add("client", make_client("Ada", amount="100000"))
    bob = store.add("client", make_client("Bob", amount="5000"))
    lumen = store.add("vendor", make_vendor())
    carl = store.add("labor", make_labor())
    kitchen = store.add("contract", make_contract(ada.id, vendor_id=lumen.id, title="Kitchen",
                                                  commission="50000"))
    hall = store.add("contract", make_contract(bob.id, labor_id=carl.id, title="Hall",
                                               commission="1000"))
    store.add("payment", make_payment("20000", "vendor", contract_id=kitchen.id))
    store.add("payment", make_payment("5000", "client", contract_id=kitchen.id))
    store.add("payment", make_payment("1000", "labor", contract_id=hall.id,
                                      when=date(2024, 4, 2)))
    store.add("payment", make_payment("40000", "client", client_id=ada.id))
    store.add("payment", make_payment("70000", "client", client_id=ada.id,
                                      when=date(2024, 4, 10), description="Final, paid"))
    store.add("task", make_task("Order tiles", client_id=ada.id))
    return {"ada": ada, "bob": bob, "lumen": lumen, "carl": carl, "kitchen": kitchen,
            "hall": hall}


class TestDetails:
    def test_contract_detail_buckets(self, service, studio):
        d = service.contract_detail(studio["kitchen"].id)
        assert d.commission.paid == Decimal("20000")
        assert d.commission.pending == Decimal("30000")
        assert d.client_side.paid == Decimal("5000")
        assert d.contract.client_name == "Ada"
        assert d.contract.counterparty_name == "Lumen Co"

    def test_client_overpayment(self, service, studio):
        d = service.client_detail(studio["ada"].id)
        assert d.balance.pending == Decimal("-10000")
        assert [p.amount for p in d.payments] == [Decimal("70000"), Decimal("40000")]
        assert [r.entity.title for r in d.contracts] == ["Kitchen"]

    def test_party_detail(self, service, studio):
        d = service.party_detail("labor", studio["carl"].id)
        assert d.balance.pending == 0
        assert d.balance.payment_status == "completed"
        assert len(d.payments) == 1

    def test_missing_ids(self, service, studio):
        with pytest.raises(NotFoundError):
            service.client_detail(999)
        with pytest.raises(NotFoundError):
            service.contract_detail(999)


class TestLists:
    def test_payment_status_filter_and_totals(self, service, studio):
        res = service.list_clients(ListFilter(payment_status="pending"))
        assert [r.entity.name for r in res.page.items] == ["Bob"]
        assert res.totals.pending == Decimal("5000")

    def test_contracts_search_by_counterparty_name(self, service, studio):
        res = service.list_contracts(ListFilter(search="lumen"))
        assert [r.entity.title for r in res.page.items] == ["Kitchen"]
        assert res.page.items[0].balance.pending == Decimal("30000")

    def test_seven_rows_per_page_and_clamp(self, service):
        for i in range(10):
            service.store.add("vendor", make_vendor(f"Vendor {i:02d}"))
        page2 = service.list_vendors(None, SortSpec("name", True), page=2)
        assert len(page2.page.items) == 3
        clamped = service.list_vendors(ListFilter(search="Vendor 01"), SortSpec("name", True),
                                       page=2)
        assert clamped.page.page == 1
        assert [r.entity.name for r in clamped.page.items] == ["Vendor 01"]

    def test_task_status_filter(self, service, studio):
        service.store.add("task", make_task("Done", status="Completed"))
        res = service.list_tasks(ListFilter(status="Completed"))
        assert [r.entity.title for r in res.page.items] == ["Done"]
        assert res.page.items[0].balance is None

    def test_caller_filter_left_untouched(self, service, studio):
        flt = ListFilter(search="ada")
        service.list_clients(flt)
        assert flt.search_fields == ()


class TestMutations:
    def test_payment_refreshes_cached_balances(self, service, studio):
        before = service.contract_detail(studio["kitchen"].id).commission.pending
        service.add_contract_payment(studio["kitchen"].id,
                                     {"amount": "10000", "date": "2024-05-01"})
        after = service.contract_detail(studio["kitchen"].id).commission.pending
        assert before - after == Decimal("10000")

    def test_contract_payment_type_follows_counterparty(self, service, studio):
        p = service.add_contract_payment(studio["hall"].id, {"amount": "5", "date": "2024-05-01"})
        assert p.type == "labor"

    def test_save_checks_references(self, service, studio):
        form = {"title": "Bath", "client_id": "999", "vendor_id": str(studio["lumen"].id),
                "contract_amount": "100", "commission_percentage": "10",
                "start_date": "2024-01-01"}
        with pytest.raises(FormValidationError) as ei:
            service.save("contract", form)
        assert "client_id" in ei.value.errors

    def test_update_missing_entity(self, service, studio):
        form = {"name": "X", "phone": "5551234567", "specialization": "Tiling"}
        with pytest.raises(NotFoundError):
            service.save("labor", form, 999)

    def test_delete_client_cascades(self, service, studio):
        service.delete("client", studio["ada"].id)
        assert [c.title for c in service.contracts()] == ["Hall"]
        assert all(p.client_id != studio["ada"].id for p in service.payments())

    def test_task_status(self, service, studio):
        task = service.tasks()[0]
        assert service.set_task_status(task.id, "Completed").status == "Completed"
        assert service.dashboard().upcoming_tasks == []
        with pytest.raises(FormValidationError):
            service.set_task_status(task.id, "Done")


class TestExport:
    def test_names_resolved(self, service, studio):
        rows = service.export_payments(payment_type="all")
        by_amount = {p.amount: p for p in rows}
        assert by_amount[Decimal("20000")].entity_name == "Lumen Co"
        assert by_amount[Decimal("20000")].contract_title == "Kitchen"
        assert by_amount[Decimal("5000")].entity_name == "Ada"
        assert by_amount[Decimal("40000")].entity_name == "Ada"
        assert by_amount[Decimal("40000")].contract_title is None

    def test_cached_payments_not_modified(self, service, studio):
        service.export_payments(payment_type="all")
        cached = service.payments()
        assert all(p.entity_name is None and p.contract_title is None for p in cached)

    def test_window_validation(self, service):
        with pytest.raises(FormValidationError):
            service.export_payments(start=date(2024, 2, 1), end=date(2024, 1, 1))

    def test_entity_payments(self, service, studio):
        name, pays = service.entity_payments("vendor", studio["lumen"].id)
        assert name == "Lumen Co"
        assert [p.amount for p in pays] == [Decimal("20000")]


class TestDocuments:
    def test_upload_download_delete(self, service, storage):
        doc = service.upload_document({"name": "Floor plan", "category": "Drawings"},
                                      "plan.PDF", b"%PDF-1.4")
        assert doc.file_path.endswith(".pdf")
        _, data = service.document_content(doc.id)
        assert data == b"%PDF-1.4"
        assert service.document_url(doc.id).startswith("/files?")
        service.delete_document(doc.id)
        assert not storage.exists(doc.file_path)
        assert service.documents() == []

    def test_missing_file(self, service):
        with pytest.raises(FormValidationError):
            service.upload_document({"name": "x", "category": "y"}, "", None)

    def test_blob_removed_when_row_insert_fails(self, service, storage, monkeypatch):
        def fail(kind, entity):
            raise BackendError("insert failed")

        monkeypatch.setattr(service.store, "add", fail)
        with pytest.raises(BackendError):
            service.upload_document({"name": "x", "category": "y"}, "a.txt", b"hi")
        assert os.listdir(storage.root) == []

    def test_search_by_category(self, service):
        service.upload_document({"name": "Quote", "category": "Invoices"}, "q.txt", b"1")
        service.upload_document({"name": "Plan", "category": "Drawings"}, "p.txt", b"2")
        res = service.list_documents(ListFilter(search="draw"))
        assert [r.entity.name for r in res.page.items] == ["Plan"]
