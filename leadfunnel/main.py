"""
Lead Funnel - Main Application Entry Point
Multi-tenant lead capture funnel with a client portal API
"""

from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from sqlalchemy.ext.asyncio import async_sessionmaker
import structlog

from leadfunnel.api import admin, auth, client_dashboard, client_leads, client_rotation, health, leads
from leadfunnel.core.config import Settings, get_settings
from leadfunnel.core.database import get_session_maker
from leadfunnel.core.errors import register_error_handlers
from leadfunnel.core.events import EventBus
from leadfunnel.core.logging_config import RequestContextMiddleware, configure_logging
from leadfunnel.core.rate_limit import RateLimiter
from leadfunnel.core.tenant_middleware import TenantContextMiddleware
from leadfunnel.services.notifications import Integrations, LeadNotifier

logger = structlog.get_logger(__name__)


class ConfigurationError(RuntimeError):
    pass


def check_production_settings(settings: Settings):
    """Missing settings are fatal in production and a warning elsewhere"""
    missing = settings.missing_production_settings()
    if not missing:
        return
    if settings.is_production:
        raise ConfigurationError(f"Missing required settings: {', '.join(missing)}")
    logger.warning(f"Settings not configured (allowed outside production): {', '.join(missing)}")


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan manager"""
    # Startup
    check_production_settings(app.state.settings)
    logger.info(f"Initializing {app.state.settings.APP_NAME} backend")
    # Tables are created by Alembic migrations, not auto-generated
    logger.info("Database managed by Alembic migrations")

    yield

    # Shutdown
    logger.info("Waiting for pending notifications")
    await app.state.event_bus.drain()
    logger.info(f"Shutting down {app.state.settings.APP_NAME} backend")


def create_app(
    settings: Optional[Settings] = None,
    session_maker: Optional[async_sessionmaker] = None,
    integrations: Optional[Integrations] = None,
) -> FastAPI:
    settings = settings or get_settings()
    configure_logging(settings.DEBUG)

    app = FastAPI(
        title=f"{settings.APP_NAME} API",
        description="Multi-tenant lead capture funnel and client portal",
        version=settings.APP_VERSION,
        lifespan=lifespan,
    )

    app.state.settings = settings
    app.state.session_maker = session_maker or get_session_maker()
    app.state.integrations = integrations or Integrations.from_settings(settings)
    app.state.event_bus = EventBus(handler_timeout=settings.NOTIFICATION_TIMEOUT_SECONDS)
    app.state.rate_limiter = RateLimiter(settings.RATE_LIMIT_MAX, settings.RATE_LIMIT_WINDOW_SECONDS)
    LeadNotifier(app.state.integrations).register(app.state.event_bus)

    register_error_handlers(app)

    # Configure middleware stack (last added runs first)
    app.add_middleware(TenantContextMiddleware, api_prefix=settings.API_PREFIX)
    app.add_middleware(RequestContextMiddleware)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.ALLOWED_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
        expose_headers=["X-Request-ID", "X-RateLimit-Limit", "X-RateLimit-Remaining", "X-RateLimit-Reset"],
    )

    # Include routers
    prefix = settings.API_PREFIX
    app.include_router(leads.router, prefix=f"{prefix}/leads", tags=["leads"])
    app.include_router(auth.router, prefix=f"{prefix}/auth", tags=["auth"])
    app.include_router(health.router, prefix=f"{prefix}/health", tags=["health"])
    app.include_router(auth.me_router, prefix=f"{prefix}/client", tags=["auth"])
    app.include_router(client_leads.router, prefix=f"{prefix}/client/leads", tags=["client-leads"])
    app.include_router(client_rotation.router, prefix=f"{prefix}/client/team/rotation", tags=["client-rotation"])
    app.include_router(client_dashboard.router, prefix=f"{prefix}/client/dashboard", tags=["client-dashboard"])
    app.include_router(admin.router, prefix=f"{prefix}/super-admin", tags=["super-admin"])

    @app.get("/")
    async def root():
        """Root endpoint"""
        return {
            "message": f"{settings.APP_NAME} API",
            "version": settings.APP_VERSION,
            "docs": "/docs",
        }

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "leadfunnel.main:app",
        host="0.0.0.0",
        port=8000,
        reload=get_settings().ENVIRONMENT == "development",
        log_level="info",
    )
