"""
FastAPI Application Entry Point.

This is the main application file for the Carpool Backend.
"""

import logging
from contextlib import asynccontextmanager
from fastapi import FastAPI, HTTPException
from fastapi.exceptions import RequestValidationError
from carpool.app.core.config import settings
from carpool.app.api.v1.router import router as api_v1_router
from carpool.app.core.observability import ObservabilityMiddleware
from carpool.app.db.session import engine, Base
from carpool.app.jobs.scheduler import get_scheduler
from carpool.app.core.exceptions import (
    AppException,
    app_exception_handler,
    http_exception_handler,
    validation_exception_handler,
    generic_exception_handler
)

# Import models to ensure they are registered with Base
from carpool.app.models.user import User
from carpool.app.models.trip import Trip
from carpool.app.models.booking import Booking
from carpool.app.models.review import Review
from carpool.app.models.notification import Notification
from carpool.app.models.audit_log import AuditLog

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Lifespan context manager for application startup/shutdown.

    1. Creates database tables on startup.
    2. Starts the lifecycle sweep (first run immediately).
    3. Stops the scheduler on shutdown.
    """
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    scheduler = None
    if settings.lifecycle_sweep_enabled:
        scheduler = get_scheduler()
        scheduler.add_lifecycle_sweep()
        scheduler.start()
    else:
        logger.info("Lifecycle sweep disabled")

    yield

    if scheduler is not None:
        scheduler.shutdown()


# Initialize FastAPI application
app = FastAPI(
    title=settings.app_name,
    version=settings.api_version,
    debug=settings.debug,
    description="Carpool booking backend: trips, seat bookings and reviews",
    lifespan=lifespan,
)

app.add_middleware(ObservabilityMiddleware)

# Register global exception handlers
app.add_exception_handler(AppException, app_exception_handler)
app.add_exception_handler(HTTPException, http_exception_handler)
app.add_exception_handler(RequestValidationError, validation_exception_handler)
app.add_exception_handler(Exception, generic_exception_handler)


@app.get("/health", tags=["Health"])
async def health_check():
    """
    Health check endpoint.

    Returns:
        dict: Status and application information
    """
    return {
        "status": "healthy",
        "app_name": settings.app_name,
        "version": settings.api_version,
    }


# Include API v1 router
app.include_router(api_v1_router, prefix=f"/{settings.api_version}")


@app.get("/", tags=["Root"])
async def root():
    """
    Root endpoint.

    Returns:
        dict: Welcome message and API documentation links
    """
    return {
        "message": "Welcome to Carpool Backend API",
        "docs": "/docs",
        "health": "/health",
    }
