"""
Ephemeral Chat Relay - Chat Action Routes

Short POST actions. Every outcome, including malformed or unauthorized
requests, answers a plain ``ok``; effects are only visible as events.
"""

import logging
from typing import Optional, Type, TypeVar

from fastapi import APIRouter, Depends, Request
from fastapi.responses import PlainTextResponse
from pydantic import ValidationError

from relay.dependencies import get_hub
from relay.errors import MalformedPayload
from relay.models.requests import (
    ActionRequest,
    ChatPost,
    DeleteAction,
    Heartbeat,
    NicknameChange,
    ReadAck,
)
from relay.services.lifecycle import ChatHub

router = APIRouter(default_response_class=PlainTextResponse)
logger = logging.getLogger(__name__)

ActionT = TypeVar("ActionT", bound=ActionRequest)


async def parse_action(request: Request, model: Type[ActionT]) -> ActionT:
    """
    Raises:
        MalformedPayload: body is not JSON or does not match the model
    """
    body = await request.body()
    try:
        return model.model_validate_json(body)
    except ValidationError as e:
        raise MalformedPayload(f"{request.url.path}: {e.error_count()} validation error(s)") from e


async def read_action(request: Request, model: Type[ActionT]) -> Optional[ActionT]:
    try:
        return await parse_action(request, model)
    except MalformedPayload as e:
        logger.debug("Ignoring request: %s", e)
        return None


@router.post("/chat")
async def post_chat(request: Request, hub: ChatHub = Depends(get_hub)):
    """Post a text, GIF or attachment message"""
    action = await read_action(request, ChatPost)
    if action is not None:
        hub.post(action.user_id, action)
    return "ok"


@router.post("/message/delete")
async def delete_message(request: Request, hub: ChatHub = Depends(get_hub)):
    """Retract one of the caller's own messages"""
    action = await read_action(request, DeleteAction)
    if action is not None:
        hub.delete_message(action.user_id, action.message_id)
    return "ok"


@router.post("/read")
async def mark_read(request: Request, hub: ChatHub = Depends(get_hub)):
    action = await read_action(request, ReadAck)
    if action is not None:
        hub.mark_read(action.user_id, action.message_id)
    return "ok"


@router.post("/nickname")
async def change_nickname(request: Request, hub: ChatHub = Depends(get_hub)):
    action = await read_action(request, NicknameChange)
    if action is not None:
        hub.rename(action.user_id, action.nickname)
    return "ok"


@router.post("/heartbeat")
async def heartbeat(request: Request, hub: ChatHub = Depends(get_hub)):
    action = await read_action(request, Heartbeat)
    if action is not None:
        hub.heartbeat(action.user_id)
    return "ok"
