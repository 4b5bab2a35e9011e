"""
Ephemeral Chat Relay - Main Entry Point

FastAPI application relaying an in-memory group chat over server-sent
events. All chat state lives in one ChatHub and is lost on restart.
"""

import logging
from typing import Optional

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.trustedhost import TrustedHostMiddleware
import uvicorn

from relay import __version__
from relay.config import Settings, settings as default_settings
from relay.logging_config import configure_logging
from relay.routes import actions, events, health, lookup
from relay.services.gif_service import GifService
from relay.services.lifecycle import ChatHub
from relay.services.preview_service import LinkPreviewService

logger = logging.getLogger(__name__)


def create_app(settings: Optional[Settings] = None, hub: Optional[ChatHub] = None) -> FastAPI:
    """Build the application around a (possibly injected) chat hub"""
    settings = settings or default_settings
    configure_logging(settings)

    app = FastAPI(
        title=settings.APP_NAME,
        description="Ephemeral in-memory group chat relay",
        version=__version__,
    )

    app.state.settings = settings
    app.state.hub = hub or ChatHub(settings)
    app.state.gif_service = GifService(settings)
    app.state.preview_service = LinkPreviewService(settings)

    # Security middleware
    app.add_middleware(
        TrustedHostMiddleware,
        allowed_hosts=settings.ALLOWED_HOSTS,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.CORS_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Include routers
    app.include_router(health.router, prefix="/health", tags=["health"])
    app.include_router(events.router, tags=["events"])
    app.include_router(actions.router, tags=["actions"])
    app.include_router(lookup.router, tags=["lookup"])

    @app.on_event("startup")
    async def startup_event():
        """Start the idle sweep clock"""
        app.state.hub.start()
        logger.info("%s starting on %s:%s", settings.APP_NAME, settings.HOST, settings.PORT)

    @app.on_event("shutdown")
    async def shutdown_event():
        """Close every open stream"""
        app.state.hub.stop()
        logger.info("%s shutting down", settings.APP_NAME)

    return app


app = create_app()


if __name__ == "__main__":
    uvicorn.run(
        "relay.main:app",
        host=default_settings.HOST,
        port=default_settings.PORT,
        reload=default_settings.DEBUG,
    )
