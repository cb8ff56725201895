"""
FastAPI app entry point aggregating the routers under dashboard/routes.
Run with `uvicorn dashboard.api:app`.
"""
from __future__ import annotations

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from . import __version__
from .db import get_cors_origins
from .logs import ensure_log_schema, LogContext
from .services.invoice_svc import ensure_invoice_schema
from .services.view_cache import view_cache

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    ensure_log_schema()
    try:
        ensure_invoice_schema()
    except Exception as e:
        logger.exception("ensure_invoice_schema failed")
        LogContext("STARTUP").write("ERROR", f"ensure_invoice_schema_failed: {e}")
        raise
    yield
    view_cache.clear()


app = FastAPI(title="invoice-dashboard-api", version=__version__, lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=get_cors_origins(),
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


from .routes import base as base_routes
from .routes import invoices as invoices_routes
from .routes import logs as logs_routes

app.include_router(base_routes.router)
app.include_router(invoices_routes.router)
app.include_router(logs_routes.router)
