"""
Application entry point.

Creates the FastAPI application and wires together:
- Routers (identity, account, health)
- Error handlers (centralized domain-to-HTTP mapping)
- Security middleware (headers, CORS, rate limiting)
- Logging configuration
- Schema creation on startup

No business logic belongs here.
"""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from slowapi.errors import RateLimitExceeded
from slowapi.middleware import SlowAPIMiddleware

from coinvault.core.config import settings
from coinvault.infrastructure.identity.database import create_schema
from coinvault.interfaces.health import router as health_router
from coinvault.interfaces.identity.dependencies import get_engine
from coinvault.interfaces.identity.router import account_router
from coinvault.interfaces.identity.router import router as identity_router
from coinvault.shared.errors.handlers import register_error_handlers
from coinvault.shared.logging import configure_logging
from coinvault.shared.security.headers import SecurityHeadersMiddleware
from coinvault.shared.security.rate_limiting import (
    limiter,
    rate_limit_exceeded_handler,
)

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan: make sure the identity tables exist."""
    engine = app.dependency_overrides.get(get_engine, get_engine)()
    create_schema(engine)
    logger.info("%s %s started", settings.project_name, settings.version)
    yield
    logger.info("%s shutting down", settings.project_name)


def create_app() -> FastAPI:
    """Create and configure the FastAPI application.

    Registers routers, error handlers, and security middleware.
    This is the composition root of the application.

    Returns:
        A fully configured FastAPI application instance.
    """
    configure_logging(level=settings.log_level)

    app = FastAPI(
        title=settings.project_name,
        version=settings.version,
        docs_url="/docs" if settings.debug else None,
        redoc_url="/redoc" if settings.debug else None,
        lifespan=lifespan,
    )

    # --- Rate Limiting ---
    app.state.limiter = limiter
    app.add_exception_handler(RateLimitExceeded, rate_limit_exceeded_handler)
    app.add_middleware(SlowAPIMiddleware)

    # --- Security Middleware ---
    app.add_middleware(SecurityHeadersMiddleware)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["GET", "POST", "PUT"],
        allow_headers=["Authorization", "Content-Type"],
    )

    # --- Error Handlers ---
    register_error_handlers(app)

    # --- Routers ---
    app.include_router(health_router, prefix="/api/v1")
    app.include_router(identity_router, prefix="/api/v1")
    app.include_router(account_router, prefix="/api/v1")

    return app


app = create_app()
