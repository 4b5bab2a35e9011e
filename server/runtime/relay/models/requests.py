"""
Ephemeral Chat Relay - Action Request Bodies

Short-lived POST actions sent alongside the event stream. Every body names
the acting identity in ``userId``.
"""

from typing import Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class ActionRequest(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        coerce_numbers_to_str=True,
        extra="ignore",
    )

    user_id: str = Field(min_length=1, max_length=128)


class AttachmentPayload(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="ignore")

    name: str = "file"
    mime_type: str = "application/octet-stream"
    data: str


class ChatPost(ActionRequest):
    message: Optional[str] = None
    message_type: str = "text"
    gif_url: Optional[str] = None
    attachment: Optional[AttachmentPayload] = None
    reply_to: Optional[int] = None
    encrypted: bool = False


class DeleteAction(ActionRequest):
    message_id: int


class ReadAck(ActionRequest):
    message_id: int


class NicknameChange(ActionRequest):
    nickname: str = ""


class Heartbeat(ActionRequest):
    pass
