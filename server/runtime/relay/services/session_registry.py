"""
Ephemeral Chat Relay - Session Registry

Maps identity tokens to their connection state. Mutations are serialized
by the hub that owns the registry.
"""

import time
from typing import Callable, Dict, List, Optional, Set, Tuple

from relay.models.chat import Channel, Session
from relay.sanitize import clean_display_name, placeholder_name


class SessionRegistry:
    """Identity keyed sessions in join order"""

    def __init__(self, clock: Callable[[], float] = time.monotonic, nickname_max_chars: int = 20):
        self._clock = clock
        self.nickname_max_chars = nickname_max_chars
        self._sessions: Dict[str, Session] = {}

    def __len__(self) -> int:
        return len(self._sessions)

    def __contains__(self, identity: str) -> bool:
        return identity in self._sessions

    def get(self, identity: str) -> Optional[Session]:
        return self._sessions.get(identity)

    def upsert(
        self,
        identity: str,
        origin: str,
        channel: Channel,
        display_name: Optional[str] = None,
    ) -> Tuple[Session, bool]:
        """
        Register a channel for an identity.

        An existing session keeps its place and name (unless a usable new
        name is given); its timers are canceled before the new channel is
        bound. Closing the superseded channel is left to the caller.

        Returns:
            (session, created)
        """
        now = self._clock()
        name = clean_display_name(display_name, self.nickname_max_chars)

        session = self._sessions.get(identity)
        if session is None:
            session = Session(
                identity=identity,
                origin=origin,
                channel=channel,
                display_name=name or placeholder_name(),
                last_activity_at=now,
            )
            self._sessions[identity] = session
            return session, True

        session.cancel_tasks()
        session.channel = channel
        session.origin = origin
        if name:
            session.display_name = name
        session.last_activity_at = now
        return session, False

    def remove(self, identity: str) -> Optional[Session]:
        session = self._sessions.pop(identity, None)
        if session is not None:
            session.cancel_tasks()
        return session

    def touch(self, identity: str) -> Optional[Session]:
        session = self._sessions.get(identity)
        if session is not None:
            session.last_activity_at = self._clock()
        return session

    def rename(self, identity: str, new_name) -> Optional[Tuple[str, str]]:
        """
        Change a display name.

        Returns:
            (old, new) if the name changed, otherwise None
        """
        session = self._sessions.get(identity)
        if session is None:
            return None
        name = clean_display_name(new_name, self.nickname_max_chars) or placeholder_name()
        if name == session.display_name:
            return None
        old = session.display_name
        session.display_name = name
        return old, name

    def snapshot(self) -> List[Session]:
        return list(self._sessions.values())

    def roster(self) -> List[str]:
        return [s.display_name for s in self._sessions.values()]

    def origins(self, excluding: Optional[str] = None) -> Set[str]:
        return {s.origin for s in self._sessions.values() if s.identity != excluding}
