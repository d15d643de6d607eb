"""FastAPI application factory."""

import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from billing_engine.api.routes import (
    billcom_router,
    financial_reports_router,
    fractional_incentives_router,
    health_router,
    invoices_router,
    time_entries_router,
)
from billing_engine.billcom import SessionCacheRegistry
from billing_engine.config import get_settings
from billing_engine.database import create_schema, dispose_db, init_db
from billing_engine.exceptions import (
    AuthorizationError,
    BillingEngineError,
    ConflictError,
    ExternalSystemError,
    NoBillableEntriesError,
    NotFoundError,
    ValidationError,
)
from billing_engine.services import LoggingNotifier

logger = logging.getLogger(__name__)

# Most specific class wins; looked up along the exception's MRO.
ERROR_STATUS: dict[type[BillingEngineError], int] = {
    NoBillableEntriesError: status.HTTP_400_BAD_REQUEST,
    ValidationError: status.HTTP_400_BAD_REQUEST,
    NotFoundError: status.HTTP_404_NOT_FOUND,
    ConflictError: status.HTTP_409_CONFLICT,
    AuthorizationError: status.HTTP_403_FORBIDDEN,
    ExternalSystemError: status.HTTP_502_BAD_GATEWAY,
}


def status_for(exc: BillingEngineError) -> int:
    for cls in type(exc).__mro__:
        if cls in ERROR_STATUS:
            return ERROR_STATUS[cls]
    return status.HTTP_400_BAD_REQUEST


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan handler."""
    # Startup
    settings = get_settings()
    init_db()
    if settings.debug:
        await create_schema()
    app.state.billcom_sessions = SessionCacheRegistry(
        settings.billcom_session_ttl_minutes,
        settings.billcom_session_buffer_minutes,
    )
    app.state.notifier = LoggingNotifier()
    yield
    # Shutdown
    app.state.billcom_sessions.clear()
    await dispose_db()


def create_app() -> FastAPI:
    """Create and configure the FastAPI application."""
    app = FastAPI(
        title="Consulting Billing Engine API",
        description="Time entry approval, fractional incentives, invoicing and Bill.com submission",
        version="0.1.0",
        lifespan=lifespan,
    )

    # CORS middleware
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Exception handlers
    @app.exception_handler(BillingEngineError)
    async def billing_error_handler(request: Request, exc: BillingEngineError) -> JSONResponse:
        """Translate domain errors to their HTTP status."""
        code = status_for(exc)
        if code >= 500:
            logger.error("%s %s failed: %s", request.method, request.url.path, exc.message)
        return JSONResponse(
            status_code=code,
            content={"detail": exc.message, "code": exc.code},
        )

    @app.exception_handler(Exception)
    async def general_exception_handler(request: Request, exc: Exception) -> JSONResponse:
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
    app.include_router(time_entries_router, prefix="/api/v1")
    app.include_router(fractional_incentives_router, prefix="/api/v1")
    app.include_router(invoices_router, prefix="/api/v1")
    app.include_router(financial_reports_router, prefix="/api/v1")
    app.include_router(billcom_router, prefix="/api/v1")

    return app


# Default app instance for uvicorn
app = create_app()
