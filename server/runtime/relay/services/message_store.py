"""
Ephemeral Chat Relay - Message Store

Bounded, append-only log of accepted chat posts with soft-delete and
read-receipt tracking.
"""

import itertools
import logging
from collections import OrderedDict
from typing import Any, Callable, Dict, List, Optional

from relay.errors import MalformedPayload, RelayError, UnauthorizedAction
from relay.models.chat import Message, now_ms
from relay.models.requests import AttachmentPayload, ChatPost
from relay.sanitize import clean_text, data_url_size, escape_html, is_http_url

logger = logging.getLogger(__name__)

REPLY_SNIPPET_CHARS = 100
ATTACHMENT_NAME_CHARS = 255


class MessageStore:
    """
    Keeps the most recent ``max_messages`` posts, evicting the oldest first.

    Ids are assigned only to accepted posts, so a dropped post never
    leaves a gap. Eviction ignores deletion and read state.
    """

    def __init__(
        self,
        max_messages: int = 200,
        max_text_chars: int = 2000,
        max_attachment_bytes: int = 2 * 1024 * 1024,
        clock: Callable[[], int] = now_ms,
    ):
        self.max_messages = max_messages
        self.max_text_chars = max_text_chars
        self.max_attachment_bytes = max_attachment_bytes
        self._clock = clock
        self._messages: "OrderedDict[int, Message]" = OrderedDict()
        self._ids = itertools.count(1)

    def __len__(self) -> int:
        return len(self._messages)

    def get(self, message_id: int) -> Optional[Message]:
        return self._messages.get(message_id)

    def history(self) -> List[Message]:
        """Messages still in the window that have not been deleted, oldest first"""
        return [m for m in self._messages.values() if not m.deleted]

    def append(self, sender_identity: str, sender_name: str, payload: ChatPost) -> Optional[Message]:
        """
        Validate and record a post.

        Args:
            sender_identity: Identity of the posting session
            sender_name: Display name at the time of posting
            payload: Parsed request body

        Returns:
            The stored Message, or None if the payload was dropped
        """
        try:
            fields = self._validate(payload)
        except MalformedPayload as e:
            logger.debug("Dropped post: %s", e)
            return None

        message = Message(
            id=next(self._ids),
            sender_identity=sender_identity,
            sender_name=sender_name,
            timestamp=self._clock(),
            encrypted=bool(payload.encrypted),
            reply_to=self._reply_preview(payload.reply_to),
            **fields,
        )
        self._messages[message.id] = message
        while len(self._messages) > self.max_messages:
            self._messages.popitem(last=False)
        return message

    def mark_deleted(self, message_id: int, requester_identity: str) -> bool:
        """Soft-delete a message; only its sender may do so"""
        try:
            message = self._live(message_id)
            if message.sender_identity != requester_identity:
                raise UnauthorizedAction(f"message {message_id} belongs to another sender")
        except RelayError as e:
            logger.debug("Delete ignored: %s", e)
            return False

        message.deleted = True
        return True

    def add_reader(self, message_id: int, reader_identity: str) -> Optional[int]:
        """
        Record a read acknowledgement.

        Returns:
            Distinct reader count, or None when the message is gone, deleted,
            or the reader is its sender
        """
        try:
            message = self._live(message_id)
            if message.sender_identity == reader_identity:
                raise UnauthorizedAction("senders do not acknowledge their own messages")
        except RelayError as e:
            logger.debug("Read receipt ignored: %s", e)
            return None

        message.readers.add(reader_identity)
        return len(message.readers)

    def _live(self, message_id: int) -> Message:
        message = self._messages.get(message_id)
        if message is None:
            raise MalformedPayload(f"message {message_id} is not in the log")
        if message.deleted:
            raise MalformedPayload(f"message {message_id} was deleted")
        return message

    def _validate(self, payload: ChatPost) -> Dict[str, Any]:
        text = clean_text(payload.message, self.max_text_chars)

        if payload.message_type == "gif":
            if not is_http_url(payload.gif_url):
                raise MalformedPayload("gif post without a valid http(s) url")
            return {"kind": "gif", "text": text, "gif_url": payload.gif_url.strip()}

        if payload.attachment is not None:
            return {"kind": "file", "text": text, "attachment": self._attachment(payload.attachment)}

        if not text:
            raise MalformedPayload("empty post")
        return {"kind": "text", "text": text}

    def _attachment(self, attachment: AttachmentPayload) -> Dict[str, Any]:
        size = data_url_size(attachment.data, self.max_attachment_bytes)
        if size is None:
            raise MalformedPayload("attachment is not a base64 data url under the size limit")
        name = clean_text(attachment.name, ATTACHMENT_NAME_CHARS) or "file"
        return {
            "name": name,
            "mime_type": escape_html(attachment.mime_type.strip()[:100]) or "application/octet-stream",
            "size": size,
            "data": attachment.data,
        }

    def _reply_preview(self, reply_to: Optional[int]) -> Optional[Dict[str, Any]]:
        if reply_to is None:
            return None
        target = self._messages.get(reply_to)
        if target is None or target.deleted:
            return None

        if target.encrypted:
            snippet = ""
        elif target.text:
            snippet = target.text[:REPLY_SNIPPET_CHARS]
        elif target.kind == "gif":
            snippet = "[GIF]"
        else:
            snippet = f"[{(target.attachment or {}).get('name', 'file')}]"
        return {"id": target.id, "user": target.sender_name, "text": snippet}
