"""
FastAPI Application Entry Point.

This is the main application file for the PoultryMitra Backend.
"""

import logging
from contextlib import asynccontextmanager
from fastapi import FastAPI, HTTPException, Request
from fastapi.exceptions import RequestValidationError
from poultrymitra.app.core.config import settings
from poultrymitra.app.api.v1.router import router as api_v1_router
from poultrymitra.app.core.observability import ObservabilityMiddleware, configure_logging
from poultrymitra.app.core.redis_client import create_redis_client, ping_redis
from poultrymitra.app.db.session import Database
from poultrymitra.app.services.connection_workflow import ConnectionWorkflow
from poultrymitra.app.services.ledger_account import LedgerAccount
from poultrymitra.app.core.exceptions import (
    AppException,
    app_exception_handler,
    http_exception_handler,
    validation_exception_handler,
    generic_exception_handler
)

# Import models to ensure they are registered with Base
from poultrymitra.app.models.user import User
from poultrymitra.app.models.audit_log import AuditLog
from poultrymitra.app.models.ledger_entry import LedgerEntry
from poultrymitra.app.models.ledger_account import LedgerAccountHead
from poultrymitra.app.models.connection import Connection
from poultrymitra.app.models.membership import UserMembership

logger = logging.getLogger("poultrymitra")


def install_components(app: FastAPI, database: Database) -> None:
    """Build the ledger and connection components around a database."""
    app.state.database = database
    app.state.ledger_account = LedgerAccount.from_settings(database, settings)
    app.state.connection_workflow = ConnectionWorkflow.from_settings(database, settings)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Lifespan context manager for application startup/shutdown.

    1. Builds the database, Redis client and domain components.
    2. Creates database tables.
    3. Disposes the engine and closes Redis on shutdown.
    """
    configure_logging(settings.log_level)

    database = Database.from_settings(settings)
    await database.create_all()
    install_components(app, database)
    app.state.redis = create_redis_client(settings)
    logger.info("Application started", extra={"app_name": settings.app_name})

    yield

    await app.state.redis.aclose()
    await database.dispose()
    logger.info("Application stopped")


# Initialize FastAPI application
app = FastAPI(
    title=settings.app_name,
    version=settings.api_version,
    debug=settings.debug,
    description="Ledger and farmer/dealer connection backend for poultry farm management",
    lifespan=lifespan,
)

app.add_middleware(ObservabilityMiddleware)

# Register global exception handlers
app.add_exception_handler(AppException, app_exception_handler)
app.add_exception_handler(HTTPException, http_exception_handler)
app.add_exception_handler(RequestValidationError, validation_exception_handler)
app.add_exception_handler(Exception, generic_exception_handler)


@app.get("/health", tags=["Health"])
async def health_check(request: Request):
    """
    Health check endpoint.

    Returns:
        dict: Status, application information and Redis reachability
    """
    redis_ok = await ping_redis(request.app.state.redis)
    return {
        "status": "healthy",
        "app_name": settings.app_name,
        "version": settings.api_version,
        "redis": "ok" if redis_ok else "unavailable",
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
        "message": "Welcome to PoultryMitra Backend API",
        "docs": "/docs",
        "health": "/health",
    }
