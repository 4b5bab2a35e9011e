"""
Ephemeral Chat Relay - Session and Message State

In-memory records held by the session registry and the message store.
Nothing here outlives the process.
"""

import time
from dataclasses import dataclass, field
from typing import Any, Dict, Optional, Protocol, Set


def now_ms() -> int:
    """Wall-clock time in epoch milliseconds"""
    return int(time.time() * 1000)


class Cancelable(Protocol):
    def cancel(self) -> None: ...


class Channel(Protocol):
    """Push stream a session writes frames to"""

    closed: bool

    def send(self, frame: str) -> None: ...

    def close(self) -> None: ...


@dataclass(eq=False)
class Session:
    """
    One participant, keyed by the client supplied identity token.

    ``pending_eviction`` only exists between the channel closing and the
    grace window elapsing (or a reconnect). ``keepalive`` is the repeating
    ping for the current channel.
    """

    identity: str
    origin: str
    channel: Channel
    display_name: str
    last_activity_at: float
    pending_eviction: Optional[Cancelable] = None
    keepalive: Optional[Cancelable] = None

    def cancel_tasks(self) -> None:
        if self.pending_eviction is not None:
            self.pending_eviction.cancel()
            self.pending_eviction = None
        if self.keepalive is not None:
            self.keepalive.cancel()
            self.keepalive = None


@dataclass(eq=False)
class Message:
    """An accepted chat post"""

    id: int
    sender_identity: str
    sender_name: str
    kind: str
    timestamp: int
    text: str = ""
    gif_url: Optional[str] = None
    attachment: Optional[Dict[str, Any]] = None
    reply_to: Optional[Dict[str, Any]] = None
    encrypted: bool = False
    deleted: bool = False
    readers: Set[str] = field(default_factory=set)
