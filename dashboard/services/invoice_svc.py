from __future__ import annotations

import datetime as dt
import logging
from dataclasses import dataclass
from typing import Any, Callable, Mapping, Optional, Protocol

from pydantic import BaseModel, ConfigDict, Field

from ..db import get_conn
from ..domain.invoice_form import (
    CreateInvoice,
    FormFields,
    Invalid,
    UpdateInvoice,
    from_minor_units,
    read_form,
    to_minor_units,
    validate_invoice_form,
)
from ..logs import LogContext
from ..repository import invoice_repo
from . import view_cache as views
from .view_cache import INVOICES_PATH

logger = logging.getLogger(__name__)

MSG_CREATE_INVALID = "Invalid Form Data"
MSG_UPDATE_INVALID = "Invalid fields"
MSG_CREATE_FAILED = "Database Error: Failed to Create Invoice."
MSG_UPDATE_FAILED = "Database Error: Failed to Update Invoice."
MSG_DELETE_FAILED = "Database Error: Failed to Delete Invoice."
MSG_DELETED = "Deleted Invoice."


class InvoiceState(BaseModel):
    """Result of a form handler when it does not redirect."""

    model_config = ConfigDict(populate_by_name=True)

    message: Optional[str] = None
    errors: Optional[dict[str, list[str]]] = None
    form_fields: Optional[FormFields] = Field(default=None, alias="formFields")

    def to_payload(self) -> dict[str, Any]:
        return self.model_dump(by_alias=True, exclude_none=True)


@dataclass(frozen=True)
class Redirect:
    path: str


class InvoiceStore(Protocol):
    def insert(self, customer_id: str, amount: int, status: str, date: str) -> str: ...
    def update(self, invoice_id: str, customer_id: str, amount: int, status: str) -> int: ...
    def delete(self, invoice_id: str) -> int: ...


class SqliteInvoiceStore:
    def __init__(self, db_path: str | None = None):
        self.db_path = db_path

    def insert(self, customer_id: str, amount: int, status: str, date: str) -> str:
        with get_conn(self.db_path) as conn:
            return invoice_repo.insert(conn, customer_id, amount, status, date)

    def update(self, invoice_id: str, customer_id: str, amount: int, status: str) -> int:
        with get_conn(self.db_path) as conn:
            return invoice_repo.update(conn, invoice_id, customer_id, amount, status)

    def delete(self, invoice_id: str) -> int:
        with get_conn(self.db_path) as conn:
            return invoice_repo.delete(conn, invoice_id)


def ensure_invoice_schema():
    with get_conn() as conn:
        invoice_repo.ensure_schema(conn)


def utc_today() -> str:
    """Current UTC date as YYYY-MM-DD (date part of an ISO-8601 timestamp)."""
    return dt.datetime.now(dt.timezone.utc).isoformat().split("T")[0]


def _invalid_state(message: str, errors: dict[str, list[str]], form: Mapping[str, Any],
                   missing_customer_id: Optional[str]) -> InvoiceState:
    return InvoiceState(
        message=message,
        errors=errors,
        form_fields=FormFields.from_form(form, missing_customer_id=missing_customer_id),
    )


def create_invoice(
    _: Optional[InvoiceState],
    form: Mapping[str, Any],
    *,
    store: Optional[InvoiceStore] = None,
    revalidate_path: Callable[[str], None] = views.revalidate_path,
    redirect: Callable[[str], Any] = Redirect,
    today: Callable[[], str] = utc_today,
    log: Optional[LogContext] = None,
):
    store = store or SqliteInvoiceStore()
    log = log or LogContext("CREATE_INVOICE")
    log.set_entity("invoice", None)
    log.set_payload(read_form(form))

    result = validate_invoice_form(form, CreateInvoice)
    if isinstance(result, Invalid):
        log.write("INVALID", str(result.errors))
        return _invalid_state(MSG_CREATE_INVALID, result.errors, form, missing_customer_id=None)

    fields = result.fields
    amount_in_cents = to_minor_units(fields.amount)
    date = today()

    try:
        invoice_id = store.insert(fields.customer_id, amount_in_cents, fields.status, date)
    except Exception as e:
        logger.exception("insert invoice failed")
        log.write("ERROR", str(e))
        return InvoiceState(message=MSG_CREATE_FAILED)

    log.set_entity("invoice", invoice_id)
    log.set_after({"customer_id": fields.customer_id, "amount": amount_in_cents,
                   "status": fields.status, "date": date})
    log.write("OK")

    revalidate_path(INVOICES_PATH)
    return redirect(INVOICES_PATH)


def update_invoice(
    invoice_id: str,
    _: Optional[InvoiceState],
    form: Mapping[str, Any],
    *,
    store: Optional[InvoiceStore] = None,
    revalidate_path: Callable[[str], None] = views.revalidate_path,
    redirect: Callable[[str], Any] = Redirect,
    log: Optional[LogContext] = None,
):
    store = store or SqliteInvoiceStore()
    log = log or LogContext("UPDATE_INVOICE")
    log.set_entity("invoice", invoice_id)
    log.set_payload(read_form(form))

    result = validate_invoice_form(form, UpdateInvoice)
    if isinstance(result, Invalid):
        log.write("INVALID", str(result.errors))
        # Update echoes a missing customer id as "" (create leaves it out).
        return _invalid_state(MSG_UPDATE_INVALID, result.errors, form, missing_customer_id="")

    fields = result.fields
    amount_in_cents = to_minor_units(fields.amount)

    try:
        rows = store.update(invoice_id, fields.customer_id, amount_in_cents, fields.status)
    except Exception as e:
        logger.exception("update invoice %s failed", invoice_id)
        log.write("ERROR", str(e))
        return InvoiceState(message=MSG_UPDATE_FAILED)

    log.set_after({"customer_id": fields.customer_id, "amount": amount_in_cents,
                   "status": fields.status, "rows": rows})
    log.write("OK")

    revalidate_path(INVOICES_PATH)
    return redirect(INVOICES_PATH)


def delete_invoice(
    invoice_id: str,
    *,
    store: Optional[InvoiceStore] = None,
    revalidate_path: Callable[[str], None] = views.revalidate_path,
    log: Optional[LogContext] = None,
) -> InvoiceState:
    store = store or SqliteInvoiceStore()
    log = log or LogContext("DELETE_INVOICE")
    log.set_entity("invoice", invoice_id)
    try:
        # Zero affected rows still counts as deleted.
        rows = store.delete(invoice_id)
        revalidate_path(INVOICES_PATH)
    except Exception as e:
        logger.exception("delete invoice %s failed", invoice_id)
        log.write("ERROR", str(e))
        return InvoiceState(message=MSG_DELETE_FAILED)

    log.set_after({"rows": rows})
    log.write("OK")
    return InvoiceState(message=MSG_DELETED)


def _row_to_item(r) -> dict:
    return {
        "id": r["id"],
        "customer_id": r["customer_id"],
        "amount": int(r["amount"]),
        "amount_major": from_minor_units(r["amount"]),
        "status": r["status"],
        "date": r["date"],
    }


def list_invoices(q: str | None = None, page: int = 1, size: int = 20) -> tuple[int, list[dict]]:
    page = max(1, int(page))
    size = max(1, min(int(size), 200))
    with get_conn() as conn:
        total = invoice_repo.count_filtered(conn, q)
        rows = invoice_repo.list_page(conn, q, page, size)
        return total, [_row_to_item(r) for r in rows]


def get_invoice(invoice_id: str) -> dict | None:
    with get_conn() as conn:
        row = invoice_repo.get_one(conn, invoice_id)
    return _row_to_item(row) if row else None
