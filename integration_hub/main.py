from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import Optional
import uvicorn
import logging

import httpx

from .config import Settings, get_settings
from .database import create_engine, create_session_factory, create_tables
from .api.v1.router import api_router
from .integrations.registry import create_default_registry
from .services.metrics import MetricsRecorder
from .utils.logging import setup_logging
from .workflows.events import EventBroadcaster
from .workflows.executor import IntegrationLocks
from .workflows.notifications import Notifier


def create_app(settings: Optional[Settings] = None) -> FastAPI:
    """Build the application; process-wide collaborators are created in the lifespan"""
    settings = settings or get_settings()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Application lifespan events"""
        # Startup
        setup_logging(settings.log_level)
        logger = logging.getLogger(__name__)
        logger.info(f"Starting {settings.app_name}")

        http_client = httpx.AsyncClient(timeout=settings.http_timeout)
        engine = create_engine(settings)
        await create_tables(engine)

        app.state.settings = settings
        app.state.http_client = http_client
        app.state.engine = engine
        app.state.session_factory = create_session_factory(engine)
        app.state.registry = create_default_registry(settings, client=http_client)
        app.state.metrics = MetricsRecorder(settings.metrics_buffer_size)
        app.state.broadcaster = EventBroadcaster()
        app.state.locks = IntegrationLocks()
        app.state.notifier = Notifier(
            http_client,
            resend_api_key=settings.resend_api_key,
            email_from=settings.email_from,
            slack_token=settings.slack_bot_token
        )
        logger.info(f"Registered providers: {', '.join(app.state.registry.providers())}")

        yield

        # Shutdown
        logger.info(f"Shutting down {settings.app_name}")
        await app.state.registry.close()
        await http_client.aclose()
        await engine.dispose()

    app = FastAPI(
        title=settings.app_name,
        version=settings.app_version,
        description="Third-party integrations and workflow automation",
        docs_url="/docs" if settings.debug else None,
        redoc_url="/redoc" if settings.debug else None,
        lifespan=lifespan
    )

    # Add CORS middleware
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.allowed_origins,
        allow_credentials=True,
        allow_methods=["GET", "POST", "PUT", "DELETE"],
        allow_headers=["*"],
    )

    # Include API routes
    app.include_router(api_router, prefix="/api/v1")

    # Health check endpoint
    @app.get("/health")
    async def health_check():
        """Health check endpoint"""
        return {
            "status": "healthy",
            "version": settings.app_version,
            "providers": app.state.registry.providers(),
            "timestamp": datetime.now(timezone.utc).isoformat()
        }

    return app


app = create_app()


if __name__ == "__main__":
    settings = get_settings()
    uvicorn.run(
        "integration_hub.main:app",
        host="0.0.0.0",
        port=8000,
        reload=settings.debug
    )
