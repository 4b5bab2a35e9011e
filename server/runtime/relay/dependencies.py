"""
Ephemeral Chat Relay - Route Dependencies

Shared objects live on ``app.state`` and are handed to routes through
FastAPI dependencies.
"""

from fastapi import Request

from relay.services.gif_service import GifService
from relay.services.lifecycle import ChatHub
from relay.services.preview_service import LinkPreviewService


def get_hub(request: Request) -> ChatHub:
    """Dependency for the chat hub"""
    return request.app.state.hub


def get_gif_service(request: Request) -> GifService:
    return request.app.state.gif_service


def get_preview_service(request: Request) -> LinkPreviewService:
    return request.app.state.preview_service


def client_origin(request: Request) -> str:
    """Network origin used for admission: first X-Forwarded-For hop, else the peer address"""
    forwarded = request.headers.get("x-forwarded-for")
    if forwarded:
        first = forwarded.split(",")[0].strip()
        if first:
            return first
    return request.client.host if request.client else "unknown"
