# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""FastAPI Application Factory.

This module provides the main application factory for the interventions API.
"""

import logging
from contextlib import asynccontextmanager
from typing import AsyncGenerator

from fastapi import FastAPI, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from src.api.routes import health
from src.api.v1 import router as v1_router
from src.core.config import get_settings
from src.domains.behaviour.csv_import import CsvFormatError
from src.domains.intervention.exceptions import (
    InterventionNotFoundError,
    InterventionValidationError,
    InvalidTransitionError,
)
from src.infrastructure.background import setup_dramatiq, shutdown_dramatiq
from src.infrastructure.database.connection import close_database, get_session, init_database
from src.infrastructure.database.seeds import seed_behavioral_domains
from src.utils.logging import setup_logging

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan manager.

    Handles startup and shutdown events for the application.
    Initializes and cleans up:
    - Database connection pool
    - Behavioural domain reference data
    - Dramatiq broker

    Args:
        app: The FastAPI application instance.

    Yields:
        None during application runtime.
    """
    settings = get_settings()
    setup_logging(settings)
    logger.info(
        "Starting interventions API (environment=%s, debug=%s)",
        settings.environment,
        settings.debug,
    )

    # =========================================================================
    # Startup
    # =========================================================================

    await init_database(settings)
    logger.info("Database connection initialized")

    try:
        async with get_session() as session:
            await seed_behavioral_domains(session)
    except Exception as e:
        logger.warning("Failed to seed behavioural domains: %s", str(e))

    try:
        setup_dramatiq()
        logger.info("Dramatiq broker initialized")
    except Exception as e:
        logger.warning("Failed to setup Dramatiq: %s", str(e))

    yield

    # =========================================================================
    # Shutdown
    # =========================================================================

    try:
        shutdown_dramatiq()
        logger.info("Dramatiq broker shutdown")
    except Exception as e:
        logger.warning("Error shutting down Dramatiq: %s", str(e))

    await close_database()
    logger.info("Shutting down interventions API")


def _error_response(status_code: int, exc: Exception) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"detail": str(exc)})


async def not_found_handler(request: Request, exc: InterventionNotFoundError) -> JSONResponse:
    return _error_response(status.HTTP_404_NOT_FOUND, exc)


async def validation_error_handler(request: Request, exc: Exception) -> JSONResponse:
    return _error_response(status.HTTP_422_UNPROCESSABLE_ENTITY, exc)


async def invalid_transition_handler(request: Request, exc: InvalidTransitionError) -> JSONResponse:
    logger.info("Rejected transition on %s: %s", request.url.path, exc)
    return _error_response(status.HTTP_409_CONFLICT, exc)


def create_app() -> FastAPI:
    """Create and configure the FastAPI application.

    This factory function creates a new FastAPI instance with all
    middleware, routes, and configurations applied.

    Returns:
        Configured FastAPI application instance.
    """
    settings = get_settings()

    app = FastAPI(
        title="League Interventions API",
        description="Behaviour insights and tiered intervention tracking",
        version="1.0.0",
        docs_url="/docs" if settings.debug else None,
        redoc_url="/redoc" if settings.debug else None,
        openapi_url="/openapi.json" if settings.debug else None,
        lifespan=lifespan,
        # Disable automatic redirects from /path to /path/
        redirect_slashes=False,
    )

    # =========================================================================
    # Exception handlers
    # =========================================================================
    app.add_exception_handler(InterventionNotFoundError, not_found_handler)
    app.add_exception_handler(InterventionValidationError, validation_error_handler)
    app.add_exception_handler(CsvFormatError, validation_error_handler)
    app.add_exception_handler(InvalidTransitionError, invalid_transition_handler)

    # =========================================================================
    # Middleware
    # =========================================================================
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors.origins_list,
        allow_credentials=settings.cors.allow_credentials,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # =========================================================================
    # Routes
    # =========================================================================
    app.include_router(health.router, tags=["Health"])
    app.include_router(v1_router)

    return app
