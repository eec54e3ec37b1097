"""
backend/app/main.py

Purpose:
    FastAPI application bootstrap: middleware and router wiring, exception
    mapping, and the APScheduler lifecycle for the grading and game status
    jobs.

Dependencies:
    - app.database
    - app.workers.grading_pass
    - app.workers.game_status_sync
"""

import logging
from contextlib import asynccontextmanager

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from bson.errors import InvalidId
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pymongo.errors import ConnectionFailure, OperationFailure, ServerSelectionTimeoutError

import app.database as _db
from app.config import settings
from app.database import close_db, connect_db
from app.middleware.logging import StructuredLoggingMiddleware, setup_logging
from app.services.errors import FeedFetchError, GameResolutionError
from app.workers._state import get_worker_states

logger = logging.getLogger("pickem")
scheduler = AsyncIOScheduler()


def _build_job_specs() -> list[dict]:
    from app.workers.game_status_sync import sync_game_status
    from app.workers.grading_pass import run_scheduled_grading_pass

    return [
        {
            "id": "game_status_sync",
            "func": sync_game_status,
            "trigger": "interval",
            "trigger_kwargs": {"minutes": settings.GAME_STATUS_INTERVAL_MINUTES},
        },
        {
            "id": "grading_pass",
            "func": run_scheduled_grading_pass,
            "trigger": "interval",
            "trigger_kwargs": {"minutes": settings.GRADING_INTERVAL_MINUTES},
        },
    ]


def _register_jobs() -> int:
    added = 0
    for spec in _build_job_specs():
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
        logger.info("Background scheduler disabled via config")

    yield

    if scheduler.running:
        scheduler.shutdown(wait=False)
    from app.providers.espn import espn_feed
    await espn_feed.aclose()
    await close_db()


app = FastAPI(
    title="Pick'em Grading",
    description="Weekly pick'em grading, season stats and standings",
    version="0.1.0",
    lifespan=lifespan,
)

# CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.BACKEND_CORS_ORIGINS.split(","),
    allow_credentials=True,
    allow_methods=["GET", "POST", "PUT", "OPTIONS"],
    allow_headers=["Content-Type", "Authorization", "x-cron-secret"],
)

# Structured logging
app.add_middleware(StructuredLoggingMiddleware)

# Routers
from app.routers.grading import router as grading_router
from app.routers.scoring_rules import router as scoring_rules_router
from app.routers.standings import router as standings_router

app.include_router(grading_router)
app.include_router(standings_router)
app.include_router(scoring_rules_router)


@app.exception_handler(InvalidId)
async def invalid_object_id_handler(request: Request, exc: InvalidId):
    return JSONResponse(status_code=400, content={"detail": "Invalid ID."})


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError):
    """Return clean validation errors without leaking internal field paths."""
    errors = []
    for err in exc.errors():
        loc = err.get("loc", ())
        field = ".".join(str(l) for l in loc[1:]) if len(loc) > 1 else str(loc[-1]) if loc else "unknown"
        errors.append({"field": field, "message": err.get("msg", "Invalid value.")})
    return JSONResponse(status_code=422, content={"detail": "Validation error.", "errors": errors})


@app.exception_handler(FeedFetchError)
async def feed_fetch_error_handler(request: Request, exc: FeedFetchError):
    logger.error("Feed fetch failed on %s %s: %s", request.method, request.url.path, exc)
    return JSONResponse(status_code=502, content={"detail": str(exc)})


@app.exception_handler(GameResolutionError)
async def game_resolution_error_handler(request: Request, exc: GameResolutionError):
    return JSONResponse(status_code=404, content={"detail": str(exc)})


@app.exception_handler(ServerSelectionTimeoutError)
async def db_timeout_handler(request: Request, exc: ServerSelectionTimeoutError):
    logger.error("Database timeout: %s %s", request.method, request.url.path)
    return JSONResponse(status_code=503, content={"detail": "Service temporarily unavailable."})


@app.exception_handler(ConnectionFailure)
async def db_connection_handler(request: Request, exc: ConnectionFailure):
    logger.error("Database connection failure: %s %s", request.method, request.url.path)
    return JSONResponse(status_code=503, content={"detail": "Service temporarily unavailable."})


@app.exception_handler(OperationFailure)
async def db_operation_handler(request: Request, exc: OperationFailure):
    logger.error("Database operation error on %s %s: %s", request.method, request.url.path, exc)
    return JSONResponse(status_code=500, content={"detail": "An internal error occurred."})


@app.exception_handler(ValueError)
async def value_error_handler(request: Request, exc: ValueError):
    logger.warning("ValueError on %s %s: %s", request.method, request.url.path, exc)
    return JSONResponse(status_code=400, content={"detail": "Invalid input."})


@app.exception_handler(Exception)
async def unhandled_exception_handler(request: Request, exc: Exception):
    """Catch-all: log the real error, return a safe generic message."""
    logger.exception("Unhandled exception on %s %s", request.method, request.url.path)
    return JSONResponse(status_code=500, content={"detail": "An internal error occurred."})


@app.get("/api/health")
async def health():
    """Health check: database ping plus last run of each scheduled job."""
    try:
        result = await _db.db.command("ping")
        db_ok = result.get("ok") == 1.0
    except Exception:
        db_ok = False

    workers = await get_worker_states() if db_ok else []
    return {
        "status": "healthy" if db_ok else "degraded",
        "db": "connected" if db_ok else "disconnected",
        "scheduler": "running" if scheduler.running else "stopped",
        "workers": workers,
    }
