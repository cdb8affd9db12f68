"""
Paylink — Payment Link & Approval API.

Creates payment links against interchangeable gateways (PayPal, Stripe, a
sample gateway) and drives each transaction through new → processing →
completed/failed, normalizing every gateway's approval flow into one
result shape.

Start the server:
    uvicorn paylink.main:app --reload
"""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from paylink.api.health import router as health_router
from paylink.api.payments import router as payments_router
from paylink.api.transactions import router as transactions_router
from paylink.audit.notifier import AuditTrailSink, LoggingSink, TransactionNotifier
from paylink.config import settings
from paylink.database import async_session, dispose_db, init_db
from paylink.engine.errors import PaylinkError
from paylink.providers.registry import build_registry

logging.basicConfig(
    level=getattr(logging, settings.log_level.upper(), logging.INFO),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Initialize database and providers on startup; close provider clients on shutdown."""
    await init_db()
    app.state.registry = build_registry(settings)
    app.state.notifier = TransactionNotifier([LoggingSink(), AuditTrailSink(async_session)])
    yield
    await app.state.registry.aclose()
    await dispose_db()


app = FastAPI(
    title="Paylink",
    description=(
        "Payment link creation and approval across multiple gateways. "
        "A single transaction state machine with provider adapters that "
        "normalize immediate capture, declines and 3-D Secure challenges."
    ),
    version="0.1.0",
    lifespan=lifespan,
)


@app.exception_handler(PaylinkError)
async def paylink_error_handler(request: Request, exc: PaylinkError) -> JSONResponse:
    logging.getLogger("paylink.api").warning("%s %s failed: %s", request.method, request.url.path, exc)
    return JSONResponse(status_code=exc.http_status, content=exc.to_dict())


app.include_router(health_router)
app.include_router(payments_router, prefix="/api")
app.include_router(transactions_router, prefix="/api")
