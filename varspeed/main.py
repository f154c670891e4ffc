"""Variable speeds election FastAPI application."""

import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from varspeed.api.routes import router as api_router
from varspeed.config import get_settings
from varspeed.lib.exceptions import (
    ConfigurationError,
    ElectionCancelledError,
    ElectionNotFoundError,
    ElectionTimeoutError,
    ProtocolViolationError,
    VariableSpeedsError,
)
from varspeed.lib.models import HealthResponse
from varspeed.lib.store import close_election_store, get_election_store

# Configure logging
logging.basicConfig(
    level=get_settings().log_level_value,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)


# =============================================================================
# Lifespan Management
# =============================================================================


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Application lifespan handler."""
    settings = get_settings()

    # Startup
    logger.info("Starting variable speeds election service...")
    logger.info(f"Debug mode: {settings.debug}")
    logger.info(f"Round budget: {settings.max_rounds}")

    store = await get_election_store()
    logger.info(f"Election store initialized: {store.get_stats()}")

    yield

    # Shutdown
    logger.info("Shutting down...")
    await close_election_store()
    logger.info("Shutdown complete")


# =============================================================================
# Application Factory
# =============================================================================


def create_app() -> FastAPI:
    """Create and configure the FastAPI application."""
    settings = get_settings()

    app = FastAPI(
        title="Variable Speeds",
        description="Synchronous ring leader election with variable speed tokens",
        version="0.1.0",
        lifespan=lifespan,
        debug=settings.debug,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Exception handlers
    register_exception_handlers(app)

    # Routes
    app.include_router(api_router, prefix="/api")

    @app.get("/health", response_model=HealthResponse, tags=["Health"])
    async def health_check() -> HealthResponse:
        """Health check endpoint."""
        return HealthResponse(status="ok", version="0.1.0")

    return app


# =============================================================================
# Exception Handlers
# =============================================================================


def register_exception_handlers(app: FastAPI) -> None:
    """Register custom exception handlers."""

    @app.exception_handler(ConfigurationError)
    async def configuration_error_handler(
        request: Request, exc: ConfigurationError
    ) -> JSONResponse:
        return JSONResponse(
            status_code=422,
            content={
                "detail": exc.message,
                "field": exc.field,
                "value": exc.value,
                "type": type(exc).__name__,
            },
        )

    @app.exception_handler(ElectionNotFoundError)
    async def not_found_handler(
        request: Request, exc: ElectionNotFoundError
    ) -> JSONResponse:
        return JSONResponse(
            status_code=404,
            content={"detail": exc.message, "election_id": exc.election_id},
        )

    @app.exception_handler(ElectionCancelledError)
    async def cancelled_handler(
        request: Request, exc: ElectionCancelledError
    ) -> JSONResponse:
        return JSONResponse(status_code=409, content={"detail": exc.message})

    @app.exception_handler(ElectionTimeoutError)
    async def timeout_handler(
        request: Request, exc: ElectionTimeoutError
    ) -> JSONResponse:
        logger.error(f"Election timed out: {exc.message}")
        return JSONResponse(
            status_code=504,
            content={"detail": exc.message, "timeout": exc.timeout},
        )

    @app.exception_handler(ProtocolViolationError)
    async def protocol_error_handler(
        request: Request, exc: ProtocolViolationError
    ) -> JSONResponse:
        logger.error(f"Protocol violation: {exc.message}")
        return JSONResponse(
            status_code=500,
            content={
                "detail": "Protocol invariant violated",
                "error": exc.message,
                "process_id": exc.process_id,
                "round": exc.round_number,
            },
        )

    @app.exception_handler(VariableSpeedsError)
    async def election_error_handler(
        request: Request, exc: VariableSpeedsError
    ) -> JSONResponse:
        logger.error(f"Election error: {exc.message}")
        return JSONResponse(
            status_code=500,
            content={"detail": exc.message, "details": exc.details},
        )


# =============================================================================
# Application Instance
# =============================================================================


app = create_app()
