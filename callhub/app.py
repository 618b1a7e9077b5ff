"""
FastAPI application -- startup-call program platform API.

Run locally:
    uvicorn callhub.app:app --reload --port 8000

or through the console script:
    callhub-server --init-db
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from callhub.config import ENABLE_SCHEDULER, SCHEDULER_INTERVAL_MINUTES
from callhub.database import init_db, ping
from callhub.logger import setup_logging
from callhub.retry import with_db_retry
from callhub.routes import (
    budgets,
    dashboard,
    events,
    milestones,
    notifications,
    reviews,
    sponsorships,
    startup_calls,
    startups,
    tasks,
    users,
)
from callhub.validation import ValidationError

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    setup_logging()
    await with_db_retry(init_db)

    scheduler = None
    if ENABLE_SCHEDULER:
        from callhub.scheduler import get_scheduler

        scheduler = get_scheduler()
        scheduler.start(interval_minutes=SCHEDULER_INTERVAL_MINUTES)

    yield

    # Shutdown
    if scheduler and scheduler.is_running:
        scheduler.stop()


app = FastAPI(
    title="CallHub API",
    version="1.0.0",
    description="Startup-call programs: applications, reviews, budgets, sponsorship and events",
    lifespan=lifespan,
)

app.include_router(users.router)
app.include_router(startups.router)
app.include_router(milestones.router)
app.include_router(tasks.router)
app.include_router(startup_calls.router)
app.include_router(startup_calls.applications_router)
app.include_router(reviews.router)
app.include_router(budgets.router)
app.include_router(sponsorships.router)
app.include_router(sponsorships.applications_router)
app.include_router(sponsorships.sponsors_router)
app.include_router(events.router)
app.include_router(notifications.router)
app.include_router(dashboard.router)


@app.exception_handler(ValidationError)
async def validation_error_handler(request: Request, exc: ValidationError):
    content = {"detail": exc.message}
    if exc.details is not None:
        content["details"] = exc.details
    return JSONResponse(status_code=400, content=content)


@app.exception_handler(IntegrityError)
async def integrity_error_handler(request: Request, exc: IntegrityError):
    logger.warning("Integrity error on %s %s: %s", request.method, request.url.path, exc.orig)
    return JSONResponse(status_code=409, content={"detail": "Duplicate or conflicting record"})


@app.exception_handler(SQLAlchemyError)
async def database_error_handler(request: Request, exc: SQLAlchemyError):
    logger.error("Database error on %s %s: %s", request.method, request.url.path, exc)
    return JSONResponse(status_code=503, content={"detail": "Database unavailable, please try again later"})


@app.get("/health")
async def health():
    """Health check endpoint."""
    try:
        await with_db_retry(ping, max_retries=1)
        database = "ok"
    except SQLAlchemyError as e:
        logger.warning("Health check could not reach the database: %s", e)
        database = "unavailable"

    from callhub.scheduler import get_scheduler

    return {
        "status": "ok" if database == "ok" else "degraded",
        "database": database,
        "scheduler_running": get_scheduler().is_running,
    }
