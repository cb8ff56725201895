from __future__ import annotations

from fastapi import APIRouter, HTTPException, Query, Request
from fastapi.responses import JSONResponse, RedirectResponse
from starlette.concurrency import run_in_threadpool

from ..logs import LogContext
from ..services.invoice_svc import (
    InvoiceState,
    MSG_DELETED,
    create_invoice,
    delete_invoice,
    get_invoice,
    list_invoices,
    update_invoice,
)
from ..services.view_cache import INVOICES_PATH, view_cache

router = APIRouter()

DEFAULT_PAGE_SIZE = 20


def _see_other(path: str) -> RedirectResponse:
    return RedirectResponse(path, status_code=303)


def _state_response(state: InvoiceState) -> JSONResponse:
    if state.errors is not None:
        status_code = 400
    else:
        status_code = 500
    return JSONResponse(content=state.to_payload(), status_code=status_code)


@router.get(INVOICES_PATH)
def invoices_view(
    q: str | None = None,
    page: int = Query(1, ge=1),
    size: int = Query(DEFAULT_PAGE_SIZE, ge=1, le=200),
):
    # Only the unfiltered first page is cached; that is what revalidation targets.
    cacheable = not q and page == 1 and size == DEFAULT_PAGE_SIZE
    generation = None
    if cacheable:
        cached = view_cache.get(INVOICES_PATH)
        if cached is not None:
            return cached
        generation = view_cache.generation(INVOICES_PATH)
    try:
        total, items = list_invoices(q, page, size)
    except Exception as e:
        raise HTTPException(status_code=500, detail=str(e))
    payload = {"total": total, "items": items}
    if cacheable:
        view_cache.put(INVOICES_PATH, payload, generation)
    return payload


@router.get("/api/invoices/{invoice_id}")
def api_invoice_get(invoice_id: str):
    try:
        item = get_invoice(invoice_id)
    except Exception as e:
        raise HTTPException(status_code=500, detail=str(e))
    if item is None:
        raise HTTPException(status_code=404, detail="Invoice not found")
    return item


@router.post(f"{INVOICES_PATH}/create")
async def invoices_create(request: Request):
    form = await request.form()
    res = await run_in_threadpool(
        create_invoice, None, form, redirect=_see_other, log=LogContext("CREATE_INVOICE")
    )
    if isinstance(res, InvoiceState):
        return _state_response(res)
    return res


@router.post(INVOICES_PATH + "/{invoice_id}/edit")
async def invoices_update(invoice_id: str, request: Request):
    form = await request.form()
    res = await run_in_threadpool(
        update_invoice, invoice_id, None, form, redirect=_see_other, log=LogContext("UPDATE_INVOICE")
    )
    if isinstance(res, InvoiceState):
        return _state_response(res)
    return res


@router.post(INVOICES_PATH + "/{invoice_id}/delete")
def invoices_delete(invoice_id: str):
    state = delete_invoice(invoice_id, log=LogContext("DELETE_INVOICE"))
    if state.message != MSG_DELETED:
        return JSONResponse(content=state.to_payload(), status_code=500)
    return state.to_payload()
