"""
Ephemeral Chat Relay - Health Check Routes

Provides health check endpoints for monitoring.
"""

from datetime import datetime, timezone

from fastapi import APIRouter, Depends

from relay.dependencies import get_hub
from relay.services.lifecycle import ChatHub

router = APIRouter()


def _timestamp() -> str:
    return datetime.now(timezone.utc).isoformat()


@router.get("/")
async def health_check(hub: ChatHub = Depends(get_hub)):
    """Basic health check endpoint with room occupancy"""
    return {
        "status": "ok",
        "timestamp": _timestamp(),
        "service": "chat-relay",
        **hub.stats(),
    }


@router.get("/ready")
async def readiness():
    """Readiness check - the relay keeps no external state"""
    return {
        "status": "ready",
        "timestamp": _timestamp(),
    }


@router.get("/live")
async def liveness():
    """Liveness check - indicates service is running"""
    return {
        "status": "alive",
        "timestamp": _timestamp(),
    }
