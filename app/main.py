# app/main.py
"""
Application entry point: logging, resource lifecycle, routers and request timing.
"""

import time
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request

from app.config import settings
from app.db.pool import db_pool
from app.infrastructure.observability.logging import get_logger, log_request, setup_logging
from app.routes import bookings, contacts, health, office, user
from app.services.calendar.provider import provider_registry

# Setup logging before creating the app
setup_logging(log_level=settings.LOG_LEVEL)
logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Open the database pool when configured; close pool and provider clients on shutdown."""
    logger.info("Application starting", environment=settings.environment, debug=settings.debug)

    if settings.DATABASE_URL:
        await db_pool.initialize()
    else:
        logger.info("DATABASE_URL not set, skipping database pool")

    yield

    logger.info("Application shutting down")
    await provider_registry.close()
    await db_pool.close()
    logger.info("All services closed")


app = FastAPI(
    title="Scheduling Assistant",
    description="Free-text booking assistant with Google and Microsoft calendar sync",
    version="0.1.0",
    lifespan=lifespan,
)

app.include_router(health.router)
app.include_router(office.router)
app.include_router(bookings.router)
app.include_router(contacts.router)
app.include_router(user.router)


@app.middleware("http")
async def log_requests(request: Request, call_next):
    """Log HTTP requests with timing."""
    start_time = time.time()
    response = await call_next(request)
    process_time = (time.time() - start_time) * 1000

    log_request(
        method=request.method,
        path=request.url.path,
        status_code=response.status_code,
        duration_ms=round(process_time, 2),
    )
    return response


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(app, host="0.0.0.0", port=8000)
