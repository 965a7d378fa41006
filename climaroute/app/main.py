"""
FastAPI Application Entry Point.

This is the main application file for the ClimaRoute orchestration engine.
"""

from contextlib import asynccontextmanager
from fastapi import FastAPI, HTTPException
from fastapi.exceptions import RequestValidationError
from climaroute.app.core.config import settings
from climaroute.app.core.observability import ObservabilityMiddleware, configure_logging
from climaroute.app.api.v1.router import router as api_v1_router
from climaroute.app.db.session import engine, Base
from climaroute.app.services.engine import Engine
from climaroute.app.core.exceptions import (
    AppException,
    app_exception_handler,
    http_exception_handler,
    validation_exception_handler,
    generic_exception_handler
)

# Import models to ensure they are registered with Base
from climaroute.app.models.trip import Trip
from climaroute.app.models.sos_alert import SosAlert


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Lifespan context manager for application startup/shutdown.

    1. Creates database tables on startup.
    2. Attaches the orchestration engine unless one was provided.
    """
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    if getattr(app.state, "engine", None) is None:
        app.state.engine = Engine(settings)
    yield
    await engine.dispose()


configure_logging(settings.debug)

# Initialize FastAPI application
app = FastAPI(
    title=settings.app_name,
    version=settings.api_version,
    debug=settings.debug,
    description="Weather-aware route optimization and trip orchestration",
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
        dict: Status, application information and geometry circuit state
    """
    orchestration = getattr(app.state, "engine", None)
    return {
        "status": "healthy",
        "app_name": settings.app_name,
        "version": settings.api_version,
        "geometry_circuit": orchestration.circuit_breaker.state if orchestration else None,
    }


# Include API v1 router
app.include_router(api_v1_router, prefix=f"/{settings.api_version}")
