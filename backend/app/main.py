"""
backend/app/main.py

Purpose:
    FastAPI application bootstrap: middleware/router wiring, exception
    handlers, scheduler lifecycle for the odds poller and the settlement run,
    health and Prometheus endpoints.

Dependencies:
    - app.database
    - app.workers.odds_poller
    - app.workers.settlement_job
"""

import logging
from contextlib import asynccontextmanager

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, Response
from prometheus_client import CONTENT_TYPE_LATEST, generate_latest
from pymongo.errors import (
    ConnectionFailure,
    DuplicateKeyError,
    OperationFailure,
    ServerSelectionTimeoutError,
)

import app.database as _db
from app.config import settings
from app.database import close_db, connect_db
from app.middleware.logging import StructuredLoggingMiddleware, setup_logging
from app.providers.sportsgameodds import sportsgameodds_provider
from app.routers.settlement import router as settlement_router
from app.services.errors import SettlementError
from app.workers.odds_poller import poll_odds
from app.workers.settlement_job import run_settlement

logger = logging.getLogger("sharpledger")
scheduler = AsyncIOScheduler()


def _build_job_specs() -> list[dict]:
    return [
        {
            "id": "odds_poller",
            "func": poll_odds,
            "trigger": "interval",
            "trigger_kwargs": {"minutes": settings.ODDS_POLL_MINUTES},
        },
        {
            "id": "settlement",
            "func": run_settlement,
            "trigger": "interval",
            "trigger_kwargs": {"minutes": settings.SETTLEMENT_INTERVAL_MINUTES},
        },
    ]


def _register_jobs() -> int:
    added = 0
    for spec in _build_job_specs():
        if scheduler.get_job(spec["id"]):
            continue
        scheduler.add_job(
            spec["func"],
            spec["trigger"],
            id=spec["id"],
            replace_existing=True,
            max_instances=1,
            coalesce=True,
            **spec["trigger_kwargs"],
        )
        added += 1
    return added


@asynccontextmanager
async def lifespan(app: FastAPI):
    setup_logging()
    await connect_db()

    if settings.SCHEDULER_ENABLED:
        added = _register_jobs()
        scheduler.start()
        logger.info("Background scheduler started with %d jobs", added)
    else:
        logger.info("Scheduler disabled via config")

    yield

    if scheduler.running:
        scheduler.shutdown(wait=False)
    await sportsgameodds_provider.aclose()
    await close_db()


app = FastAPI(
    title="SharpLedger",
    description="Odds consolidation and bet settlement service",
    version="0.1.0",
    lifespan=lifespan,
)

# CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.BACKEND_CORS_ORIGINS.split(","),
    allow_credentials=True,
    allow_methods=["GET", "POST", "OPTIONS"],
    allow_headers=["Content-Type", "X-Request-ID"],
)

# Structured logging
app.add_middleware(StructuredLoggingMiddleware)

# Routers
app.include_router(settlement_router)


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError):
    """Return clean validation errors without leaking internal field paths."""
    errors = []
    for err in exc.errors():
        loc = err.get("loc", ())
        field = ".".join(str(part) for part in loc[1:]) if len(loc) > 1 else str(loc[-1]) if loc else "unknown"
        errors.append({"field": field, "message": err.get("msg", "Invalid value.")})
    return JSONResponse(status_code=422, content={"detail": "Validation error.", "errors": errors})


@app.exception_handler(DuplicateKeyError)
async def duplicate_key_handler(request: Request, exc: DuplicateKeyError):
    return JSONResponse(status_code=409, content={"detail": "Duplicate entry."})


async def db_unavailable_handler(request: Request, exc: ConnectionFailure):
    logger.error("Database unavailable (%s) on %s %s", type(exc).__name__, request.method, request.url.path)
    return JSONResponse(status_code=503, content={"detail": "Service temporarily unavailable."})


for _exc_class in (ServerSelectionTimeoutError, ConnectionFailure):
    app.add_exception_handler(_exc_class, db_unavailable_handler)


@app.exception_handler(OperationFailure)
async def db_operation_handler(request: Request, exc: OperationFailure):
    logger.error("Database operation error on %s %s: %s", request.method, request.url.path, exc)
    return JSONResponse(status_code=500, content={"detail": "An internal error occurred."})


@app.exception_handler(SettlementError)
async def settlement_error_handler(request: Request, exc: SettlementError):
    logger.error("Pipeline error on %s %s: %s", request.method, request.url.path, exc)
    return JSONResponse(status_code=502, content={"success": False, "error": str(exc)})


@app.exception_handler(Exception)
async def unhandled_exception_handler(request: Request, exc: Exception):
    """Catch-all: log the real error, return a safe generic message."""
    logger.exception("Unhandled exception on %s %s", request.method, request.url.path)
    return JSONResponse(status_code=500, content={"detail": "An internal error occurred."})


@app.get("/health")
async def health():
    """Health check -- verifies DB connection and provider status."""
    try:
        result = await _db.db.command("ping")
        db_ok = result.get("ok") == 1.0
    except Exception:
        db_ok = False

    return {
        "status": "healthy" if db_ok else "degraded",
        "db": "connected" if db_ok else "disconnected",
        "odds_provider": {
            "circuit_open": sportsgameodds_provider.circuit_open,
        },
        "scheduler": {
            "running": scheduler.running,
            "jobs": [job.id for job in scheduler.get_jobs()],
        },
    }


@app.get("/metrics")
async def metrics():
    return Response(content=generate_latest(), media_type=CONTENT_TYPE_LATEST)
