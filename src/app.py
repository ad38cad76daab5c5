"""Dispatch FastAPI application.

Web server for the order claim and dispatch core: REST routes under
``/orders``, the realtime WebSocket at ``/ws/dispatch`` and the expiry
reaper, which runs for the lifetime of the app.

Usage:
    uvicorn src.app:app --host 0.0.0.0 --port 8000 --reload
"""

import asyncio
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from protean.integrations.fastapi import register_exception_handlers

from dispatch.api.routes import order_router, register_store_error_handler
from dispatch.config import get_settings
from dispatch.domain import dispatch
from dispatch.realtime import get_notifier
from dispatch.realtime.gateway import realtime_router
from dispatch.reaper import get_reaper
from dispatch.utils.db import setup_db
from dispatch.utils.logging import configure_logging

# ---------------------------------------------------------------------------
# Domain initialization
# ---------------------------------------------------------------------------
# PROTEAN_ENV controls which config overlay is applied.
configure_logging()
dispatch.init()

settings = get_settings()


@asynccontextmanager
async def lifespan(app: FastAPI):
    get_notifier().bind_loop(asyncio.get_running_loop())
    setup_db()

    reaper = get_reaper()
    if settings.reaper_enabled:
        reaper.start()

    yield

    await reaper.stop()
    get_notifier().bind_loop(None)


# ---------------------------------------------------------------------------
# FastAPI app
# ---------------------------------------------------------------------------
app = FastAPI(
    title="Dispatch API",
    description="Order claim and delivery-pilot dispatch",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.ui_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.middleware("http")
async def domain_context_middleware(request: Request, call_next):
    """Push the dispatch domain context for order requests."""
    if request.url.path.startswith("/orders"):
        with dispatch.domain_context():
            response = await call_next(request)
        return response
    # Health check, docs, etc.
    return await call_next(request)


register_exception_handlers(app)
register_store_error_handler(app)

# ---------------------------------------------------------------------------
# Routers
# ---------------------------------------------------------------------------
app.include_router(order_router)
app.include_router(realtime_router)


# ---------------------------------------------------------------------------
# Health / root
# ---------------------------------------------------------------------------
@app.get("/health")
async def health():
    return JSONResponse(
        content={
            "status": "ok",
            "domain": {"name": dispatch.name},
            "order_store": settings.order_store,
        }
    )
