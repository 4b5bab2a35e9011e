"""
Ephemeral Chat Relay - Push Events

Pydantic models for every event fanned out over the event stream.
Field names are camelCase on the wire.
"""

from typing import List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from relay.models.chat import Message, now_ms
from relay.sanitize import sender_key


class WireModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class RelayEvent(WireModel):
    type: str

    def to_frame(self) -> str:
        """Encode as a server-sent event frame"""
        return f"data: {self.model_dump_json(by_alias=True, exclude_none=True)}\n\n"


class AttachmentInfo(WireModel):
    name: str
    mime_type: str
    size: int
    data: str


class ReplyPreview(WireModel):
    id: int
    user: str
    text: str = ""


class SystemEvent(RelayEvent):
    type: Literal["system"] = "system"
    text: str
    timestamp: int = Field(default_factory=now_ms)


class MessageEvent(RelayEvent):
    type: Literal["message"] = "message"
    id: int
    user: str
    sender_key: str
    message_type: str
    text: Optional[str] = None
    gif_url: Optional[str] = None
    attachment: Optional[AttachmentInfo] = None
    reply_to: Optional[ReplyPreview] = None
    encrypted: bool = False
    read_count: int = 0
    timestamp: int

    @classmethod
    def from_message(cls, message: Message) -> "MessageEvent":
        return cls(
            id=message.id,
            user=message.sender_name,
            sender_key=sender_key(message.sender_identity),
            message_type=message.kind,
            text=message.text or None,
            gif_url=message.gif_url,
            attachment=message.attachment,
            reply_to=message.reply_to,
            encrypted=message.encrypted,
            read_count=len(message.readers),
            timestamp=message.timestamp,
        )


class MessageDeletedEvent(RelayEvent):
    type: Literal["messageDeleted"] = "messageDeleted"
    id: int
    user: str


class ReadReceiptEvent(RelayEvent):
    type: Literal["readReceipt"] = "readReceipt"
    id: int
    read_count: int


class UserListEvent(RelayEvent):
    type: Literal["userList"] = "userList"
    users: List[str]
    count: int
