"""
FastAPI application factory and configuration.
"""
from contextlib import asynccontextmanager
from typing import Optional

import uvicorn
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from sms_dev.api import dev, health, messages, metrics, realtime, webhooks
from sms_dev.api.metrics import MetricsMiddleware
from sms_dev.core.components import Components
from sms_dev.core.config import Settings, get_settings
from sms_dev.core.errors import register_exception_handlers
from sms_dev.core.logging import get_logger, setup_logging
from sms_dev.core.metrics import set_startup_time


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan events."""
    logger = get_logger(__name__)
    settings: Settings = app.state.settings
    logger.info("Starting sms-dev API...")
    
    components = Components.build(settings)
    app.state.components = components
    set_startup_time()
    
    if settings.is_webhook_enabled and settings.webhook_url:
        logger.info("Webhook endpoint configured")
    else:
        logger.info("No webhook URL configured - set SMS_DEV_WEBHOOK_URL to enable webhook simulation")
    
    yield
    
    logger.info("Shutting down sms-dev API...")
    await components.aclose()


def create_app(settings: Optional[Settings] = None) -> FastAPI:
    """Create and configure the FastAPI application."""
    settings = settings or get_settings()
    
    setup_logging(settings)
    logger = get_logger(__name__)
    
    app = FastAPI(
        title=settings.app_name,
        version=settings.app_version,
        description="Local SMS provider simulator: message lifecycle, real-time viewers and webhook replay",
        docs_url="/docs",
        redoc_url="/redoc",
        openapi_url="/openapi.json",
        lifespan=lifespan,
    )
    app.state.settings = settings
    
    if settings.cors_enabled:
        app.add_middleware(
            CORSMiddleware,
            allow_origins=["*"],
            allow_credentials=True,
            allow_methods=["*"],
            allow_headers=["*"],
        )
    
    app.add_middleware(MetricsMiddleware)
    register_exception_handlers(app)
    
    app.include_router(health.router)
    app.include_router(messages.router)
    app.include_router(webhooks.router)
    app.include_router(dev.router)
    app.include_router(realtime.router)
    app.include_router(metrics.router)
    
    logger.info(
        "Application created",
        extra={
            "extra_data": {
                "app_name": settings.app_name,
                "version": settings.app_version,
                "debug": settings.debug,
            }
        }
    )
    
    return app


# Create the application instance
app = create_app()


def run() -> None:
    """Serve the API with uvicorn using the configured host and port."""
    settings = app.state.settings
    uvicorn.run(app, host=settings.host, port=settings.port, log_level=settings.log_level.lower())


if __name__ == "__main__":
    run()
