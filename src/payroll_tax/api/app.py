"""FastAPI application factory."""

import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from payroll_tax import __version__
from payroll_tax.api.routes import health_router, tax_router
from payroll_tax.calculators.errors import (
    NoApplicableTaxRule,
    TaxCalculationError,
    TaxEngineError,
)
from payroll_tax.config import configure_logging
from payroll_tax.database import dispose_db, init_db

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan handler."""
    # Startup
    configure_logging()
    init_db()
    yield
    # Shutdown
    await dispose_db()


def create_app() -> FastAPI:
    """Create and configure the FastAPI application."""
    app = FastAPI(
        title="Payroll Tax Engine API",
        description="Jurisdictional income tax and social security calculations",
        version=__version__,
        lifespan=lifespan,
    )

    # CORS middleware
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],  # Configure appropriately for production
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Exception handlers
    @app.exception_handler(NoApplicableTaxRule)
    async def no_rule_handler(
        request: Request, exc: NoApplicableTaxRule
    ) -> JSONResponse:
        """Handle rule lookups that did not resolve to exactly one rule."""
        return JSONResponse(
            status_code=status.HTTP_404_NOT_FOUND,
            content={"detail": str(exc), "code": exc.code, "stage": None},
        )

    @app.exception_handler(TaxCalculationError)
    async def calculation_error_handler(
        request: Request, exc: TaxCalculationError
    ) -> JSONResponse:
        """Handle calculation failures with the failing stage."""
        return JSONResponse(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            content={"detail": str(exc), "code": exc.cause_code, "stage": exc.stage},
        )

    @app.exception_handler(TaxEngineError)
    async def engine_error_handler(
        request: Request, exc: TaxEngineError
    ) -> JSONResponse:
        """Handle rule and input errors raised outside the pipeline."""
        return JSONResponse(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            content={"detail": str(exc), "code": exc.code, "stage": None},
        )

    @app.exception_handler(Exception)
    async def general_exception_handler(
        request: Request, exc: Exception
    ) -> JSONResponse:
        """Handle unexpected exceptions."""
        logger.exception("Unhandled error on %s %s", request.method, request.url.path)
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={
                "detail": "An unexpected error occurred",
                "code": "INTERNAL_ERROR",
            },
        )

    # Include routers
    app.include_router(health_router)
    app.include_router(tax_router, prefix="/api/v1")

    return app


# Default app instance for uvicorn
app = create_app()
