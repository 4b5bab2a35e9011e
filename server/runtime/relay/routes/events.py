"""
Ephemeral Chat Relay - Event Stream Route

Opens the long-lived server-sent event stream for one identity.
"""

import logging
from typing import AsyncGenerator, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Request
from fastapi.responses import StreamingResponse

from relay.dependencies import client_origin, get_hub
from relay.errors import AdmissionRejected
from relay.services.channel import QueueChannel
from relay.services.lifecycle import ChatHub

router = APIRouter()
logger = logging.getLogger(__name__)

# How often an idle stream checks whether the client went away
DISCONNECT_POLL_SECONDS = 1.0


async def event_stream(
    hub: ChatHub,
    identity: str,
    channel: QueueChannel,
    request: Request,
) -> AsyncGenerator[str, None]:
    """Drain the channel until it is closed or the client disconnects"""
    try:
        while True:
            frame = await channel.next_frame(DISCONNECT_POLL_SECONDS)
            if frame is not None:
                yield frame
                continue
            if channel.finished or await request.is_disconnected():
                break
    finally:
        hub.channel_closed(identity, channel)


@router.get("/events")
async def open_events(
    request: Request,
    identity: str = Query("", alias="id", max_length=128),
    name: Optional[str] = Query(None),
    hub: ChatHub = Depends(get_hub),
):
    """
    Join (or rejoin) the room and stream events.

    Answers 403 when the distinct-origin quota is exhausted.
    """
    identity = identity.strip()
    if not identity:
        raise HTTPException(status_code=400, detail="id is required")

    settings = hub.settings
    # Room for a full history replay on top of the live buffer
    channel = QueueChannel(maxsize=settings.CHANNEL_QUEUE_SIZE + settings.MAX_MESSAGES)
    try:
        hub.connect(identity, client_origin(request), channel, name)
    except AdmissionRejected as e:
        raise HTTPException(status_code=403, detail=str(e))

    return StreamingResponse(
        event_stream(hub, identity, channel, request),
        media_type="text/event-stream",
        headers={
            "Cache-Control": "no-cache",
            "Connection": "keep-alive",
            "X-Accel-Buffering": "no",
        },
    )
