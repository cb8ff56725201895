"""
Handler tests with an in-memory store, recording collaborators and a mocked
operation log, so no web runtime is involved.
"""
from __future__ import annotations

import sqlite3
from unittest.mock import MagicMock

import pytest

from dashboard.logs import LogContext
from dashboard.services.invoice_svc import (
    InvoiceState,
    Redirect,
    SqliteInvoiceStore,
    create_invoice,
    delete_invoice,
    get_invoice,
    update_invoice,
    utc_today,
)


class FakeStore:
    def __init__(self, fail: bool = False):
        self.fail = fail
        self.rows: dict[str, dict] = {}
        self.calls: list[tuple] = []

    def _maybe_fail(self):
        if self.fail:
            raise sqlite3.OperationalError("database is locked")

    def insert(self, customer_id, amount, status, date):
        self.calls.append(("insert", customer_id, amount, status, date))
        self._maybe_fail()
        invoice_id = f"inv{len(self.rows) + 1}"
        self.rows[invoice_id] = {"id": invoice_id, "customer_id": customer_id,
                                 "amount": amount, "status": status, "date": date}
        return invoice_id

    def update(self, invoice_id, customer_id, amount, status):
        self.calls.append(("update", invoice_id, customer_id, amount, status))
        self._maybe_fail()
        row = self.rows.get(invoice_id)
        if row is None:
            return 0
        row.update(customer_id=customer_id, amount=amount, status=status)
        return 1

    def delete(self, invoice_id):
        self.calls.append(("delete", invoice_id))
        self._maybe_fail()
        return 1 if self.rows.pop(invoice_id, None) else 0


@pytest.fixture()
def log():
    return MagicMock(spec=LogContext)


@pytest.fixture()
def revalidated():
    return []


def _redirect(path):
    return ("redirect", path)


def test_create_valid_inserts_and_redirects(log, revalidated):
    store = FakeStore()
    res = create_invoice(
        None,
        {"customerId": "c1", "amount": "50", "status": "pending"},
        store=store, revalidate_path=revalidated.append, redirect=_redirect,
        today=lambda: "2026-10-19", log=log,
    )
    assert res == ("redirect", "/dashboard/invoices")
    assert store.calls == [("insert", "c1", 5000, "pending", "2026-10-19")]
    assert revalidated == ["/dashboard/invoices"]
    log.write.assert_called_once_with("OK")


def test_create_default_redirect_value(log):
    res = create_invoice(
        None, {"customerId": "c1", "amount": "1", "status": "paid"},
        store=FakeStore(), revalidate_path=lambda p: None, log=log,
    )
    assert res == Redirect("/dashboard/invoices")


def test_create_invalid_amount_issues_no_statement(log, revalidated):
    store = FakeStore()
    res = create_invoice(
        None,
        {"customerId": "c1", "amount": "-5", "status": "pending"},
        store=store, revalidate_path=revalidated.append, redirect=_redirect, log=log,
    )
    assert isinstance(res, InvoiceState)
    assert res.to_payload() == {
        "message": "Invalid Form Data",
        "errors": {"amount": ["Amount must be greater than 0."]},
        "formFields": {"customerId": "c1", "status": "pending"},
    }
    assert store.calls == []
    assert revalidated == []


def test_create_invalid_without_customer_omits_echo(log):
    res = create_invoice(None, {"amount": "3", "status": "paid"}, store=FakeStore(), log=log)
    payload = res.to_payload()
    assert payload["errors"] == {"customerId": ["Customer ID must be a string."]}
    assert payload["formFields"] == {"amount": 3.0, "status": "paid"}


def test_create_db_error(log, revalidated):
    store = FakeStore(fail=True)
    res = create_invoice(
        None, {"customerId": "c1", "amount": "10", "status": "paid"},
        store=store, revalidate_path=revalidated.append, redirect=_redirect, log=log,
    )
    assert isinstance(res, InvoiceState)
    assert res.to_payload() == {"message": "Database Error: Failed to Create Invoice."}
    assert revalidated == []
    log.write.assert_called_once_with("ERROR", "database is locked")


def test_create_stamps_today_by_default(log):
    store = FakeStore()
    create_invoice(None, {"customerId": "c1", "amount": "19.99", "status": "paid"},
                   store=store, revalidate_path=lambda p: None, log=log)
    _, _, amount, _, date = store.calls[0]
    assert amount == 1999
    assert date == utc_today()
    assert len(date) == 10 and date[4] == "-" and date[7] == "-"


def test_update_valid_keeps_date(log, revalidated):
    store = FakeStore()
    store.rows["inv1"] = {"id": "inv1", "customer_id": "c1", "amount": 100,
                          "status": "pending", "date": "2024-01-02"}
    res = update_invoice(
        "inv1", None, {"customerId": "c2", "amount": "30", "status": "paid"},
        store=store, revalidate_path=revalidated.append, redirect=_redirect, log=log,
    )
    assert res == ("redirect", "/dashboard/invoices")
    assert store.rows["inv1"] == {"id": "inv1", "customer_id": "c2", "amount": 3000,
                                  "status": "paid", "date": "2024-01-02"}
    assert revalidated == ["/dashboard/invoices"]


def test_update_invalid_echoes_empty_customer(log):
    store = FakeStore()
    res = update_invoice("inv1", None, {"amount": "abc", "status": "paid"}, store=store, log=log)
    assert res.to_payload() == {
        "message": "Invalid fields",
        "errors": {
            "customerId": ["Customer ID must be a string."],
            "amount": ["Expected number, received nan"],
        },
        "formFields": {"customerId": "", "status": "paid"},
    }
    assert store.calls == []


def test_update_db_error(log, revalidated):
    res = update_invoice(
        "inv1", None, {"customerId": "c2", "amount": "30", "status": "paid"},
        store=FakeStore(fail=True), revalidate_path=revalidated.append, redirect=_redirect, log=log,
    )
    assert res.to_payload() == {"message": "Database Error: Failed to Update Invoice."}
    assert revalidated == []


def test_delete_missing_id_is_success(log, revalidated):
    res = delete_invoice("nope", store=FakeStore(), revalidate_path=revalidated.append, log=log)
    assert res.to_payload() == {"message": "Deleted Invoice."}
    assert revalidated == ["/dashboard/invoices"]


def test_delete_db_error_skips_invalidation(log, revalidated):
    res = delete_invoice("inv1", store=FakeStore(fail=True), revalidate_path=revalidated.append, log=log)
    assert res.to_payload() == {"message": "Database Error: Failed to Delete Invoice."}
    assert revalidated == []


def test_sqlite_store_roundtrip(tmp_db_path):
    store = SqliteInvoiceStore()
    invoice_id = store.insert("c9", 1234, "pending", "2025-05-05")
    assert store.update(invoice_id, "c10", 99, "paid") == 1
    item = get_invoice(invoice_id)
    assert item == {"id": invoice_id, "customer_id": "c10", "amount": 99,
                    "amount_major": 0.99, "status": "paid", "date": "2025-05-05"}
    assert store.delete(invoice_id) == 1
    assert store.delete(invoice_id) == 0
    assert get_invoice(invoice_id) is None


def test_sqlite_store_rejects_bad_status(tmp_db_path):
    with pytest.raises(sqlite3.IntegrityError):
        SqliteInvoiceStore().insert("c1", 100, "draft", "2025-05-05")
