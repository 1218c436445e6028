"""
FastAPI application for the Reddit harvester.

This module initializes and configures the FastAPI application that serves
the harvest endpoints, a health check and Prometheus metrics.
"""

import logging
from contextlib import asynccontextmanager
from typing import AsyncGenerator, Optional

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from prometheus_client import make_asgi_app

from reddit_harvester.api.endpoints import harvest
from reddit_harvester.api.settings import settings
from reddit_harvester.config import Config
from reddit_harvester.harvester import HarvestService
from reddit_harvester.monitoring.metrics import PrometheusExporter
from reddit_harvester.storage import build_sink

logger = logging.getLogger(__name__)


def build_service(config_path: str) -> HarvestService:
    """
    Create the harvest service from a configuration file.

    Raises:
        ValueError: if the configuration does not validate; the app refuses to start
    """
    config = Config.from_files(config_path)
    errors = config.validate()
    for error in errors:
        logger.error(f"Configuration error: {error}")
    if errors:
        raise ValueError(f"Invalid configuration in {config_path}: {'; '.join(errors)}")
    return HarvestService(config, sink=build_sink(config.storage), prometheus_exporter=PrometheusExporter())


def create_app(service: Optional[HarvestService] = None) -> FastAPI:
    """
    Build the FastAPI application.

    Args:
        service: Pre-built harvest service (tests); built from settings when omitted

    Returns:
        The configured application
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
        logger.info(f"Starting {settings.APP_NAME} v{settings.APP_VERSION}")
        harvest_service = service or build_service(settings.CONFIG_PATH)
        await harvest_service.initialize()
        app.state.harvest_service = harvest_service
        try:
            yield
        finally:
            await harvest_service.cleanup()
            logger.info(f"{settings.APP_NAME} shut down")

    app = FastAPI(
        title=settings.APP_NAME,
        version=settings.APP_VERSION,
        description="Multi-source Reddit harvesting and aggregation",
        lifespan=lifespan,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.CORS_ORIGINS,
        allow_credentials=True,
        allow_methods=settings.CORS_ALLOW_METHODS,
        allow_headers=["*"],
    )

    app.include_router(harvest.router, tags=["Harvest"])
    app.mount("/metrics", make_asgi_app())

    @app.get("/health", tags=["Health"])
    async def health_check():
        """Health check endpoint."""
        harvest_service = getattr(app.state, "harvest_service", None)
        adapters = harvest_service.adapters if harvest_service else None
        return {
            "status": "healthy",
            "service": settings.APP_NAME,
            "version": settings.APP_VERSION,
            "adapters": [adapter.method.value for adapter in adapters or []],
        }

    return app


app = create_app()
