"""
Main FastAPI application for the LeadFlow qualification engine.
"""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from admission.controller import RateLimitExceeded
from config.settings import get_settings
from database.session import init_db, close_db, get_session_factory

from .routes import chat, leads, providers
from .services import get_services, initialize_services
from .middleware.metrics import MetricsMiddleware, metrics_endpoint
from .middleware.rate_limit import RateLimitMiddleware, rate_limit_exceeded_handler

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan manager."""
    logger.info("LeadFlow starting up...")

    settings = get_settings()
    session_factory = None
    if settings.database_url:
        await init_db(settings.database_url)
        session_factory = get_session_factory()

    initialize_services(session_factory=session_factory)
    logger.info("LeadFlow ready")
    yield
    logger.info("LeadFlow shutting down...")

    await get_services().shutdown()
    if settings.database_url:
        await close_db()


def create_app() -> FastAPI:
    """Create and configure the FastAPI application."""
    settings = get_settings()

    logging.basicConfig(
        level=getattr(logging, settings.log_level.upper(), logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    app = FastAPI(
        title=settings.api_title,
        description="AI lead qualification with provider failover, conversation scoring, and persisted rate limiting.",
        version=settings.api_version,
        docs_url="/docs",
        redoc_url="/redoc",
        lifespan=lifespan,
    )

    # CORS middleware
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins_list,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Prometheus metrics middleware
    app.add_middleware(MetricsMiddleware)

    # General API admission
    if settings.rate_limit_enabled:
        app.add_middleware(RateLimitMiddleware)
    app.add_exception_handler(RateLimitExceeded, rate_limit_exceeded_handler)

    app.include_router(chat.router, prefix="/api/v1", tags=["Chat"])
    app.include_router(leads.router, prefix="/api/v1", tags=["Leads"])
    app.include_router(providers.router, prefix="/api/v1", tags=["AI Providers"])

    # --- Prometheus metrics endpoint ---
    app.get("/metrics", tags=["Monitoring"])(metrics_endpoint)

    # Root endpoint
    @app.get("/")
    async def root():
        return {
            "service": settings.brand_name,
            "version": settings.api_version,
            "status": "operational",
            "docs": "/docs",
        }

    # Health check
    @app.get("/health")
    async def health():
        services = get_services()
        return {
            "status": "healthy" if services.is_ready else "degraded",
            "services": services.health(),
        }

    return app


# Create app instance
app = create_app()


if __name__ == "__main__":
    import uvicorn
    settings = get_settings()
    uvicorn.run(app, host=settings.api_host, port=settings.api_port)
