"""FastAPI application entrypoint."""

import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from fitquest.api.auth import account_error_handler
from fitquest.api.middleware import RequestIDMiddleware, RequestLoggingMiddleware
from fitquest.api.router import api_router
from fitquest.config import settings
from fitquest.database import close_db
from fitquest.services.accounts import AccountError
from fitquest.services.email import EmailService, get_email_backend
from fitquest.services.events import create_event_bus

logger = logging.getLogger(__name__)

# Initialize Sentry for error tracking
if settings.sentry_dsn and not settings.is_test:
    import sentry_sdk

    sentry_sdk.init(
        dsn=settings.sentry_dsn,
        environment=settings.environment,
        traces_sample_rate=0.1 if settings.is_production else 1.0,
        # Request bodies carry passwords and tokens
        send_default_pii=False,
        max_request_body_size="never",
    )
    logger.info("Sentry initialized")


@asynccontextmanager
async def lifespan(_app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan handler."""
    # Startup: schema is managed by Alembic migrations
    yield
    # Shutdown
    await close_db()


def create_app() -> FastAPI:
    """Build the FastAPI application and its process-wide collaborators."""
    app = FastAPI(
        title="FitQuest API",
        description="Gamified fitness backend",
        version="0.1.0",
        lifespan=lifespan,
        docs_url="/api/docs" if settings.debug_enabled else None,
        redoc_url="/api/redoc" if settings.debug_enabled else None,
        openapi_url="/api/openapi.json" if settings.debug_enabled else None,
    )

    app.state.email_service = EmailService(get_email_backend())
    app.state.event_bus = create_event_bus()

    app.add_exception_handler(AccountError, account_error_handler)

    # Added first so the request ID middleware wraps it
    app.add_middleware(RequestLoggingMiddleware)  # type: ignore[arg-type]
    app.add_middleware(RequestIDMiddleware)  # type: ignore[arg-type]

    app.add_middleware(
        CORSMiddleware,  # type: ignore[arg-type]
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["GET", "POST", "OPTIONS"],
        allow_headers=["Authorization", "Content-Type", "Accept", "X-Request-ID"],
        expose_headers=["X-Request-ID"],
    )

    app.include_router(api_router, prefix="/api")
    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn

    from fitquest.logging import get_uvicorn_log_config, setup_logging

    setup_logging()
    uvicorn.run(
        "fitquest.main:app",
        host="0.0.0.0",
        port=8000,
        reload=settings.is_development,
        log_config=get_uvicorn_log_config(),
    )
