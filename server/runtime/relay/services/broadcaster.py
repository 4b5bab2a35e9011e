"""
Ephemeral Chat Relay - Broadcaster

Fans events out to every registered session's push channel.
"""

import logging

from relay.models.chat import Channel
from relay.models.events import RelayEvent
from relay.services.session_registry import SessionRegistry

logger = logging.getLogger(__name__)


class Broadcaster:
    """
    Delivers events over a snapshot of the registry taken at the start of
    each publish. A failing channel is skipped; removing its session is
    left to the lifecycle paths.
    """

    def __init__(self, registry: SessionRegistry):
        self.registry = registry

    def publish(self, event: RelayEvent) -> int:
        """
        Send an event to all sessions.

        Returns:
            Number of channels that accepted the frame
        """
        frame = event.to_frame()
        delivered = 0
        for session in self.registry.snapshot():
            if self._write(session.channel, frame, session.identity):
                delivered += 1
        return delivered

    def send(self, channel: Channel, event: RelayEvent) -> bool:
        return self._write(channel, event.to_frame(), None)

    def _write(self, channel: Channel, frame: str, identity) -> bool:
        try:
            channel.send(frame)
            return True
        except Exception as e:
            # Per recipient only; never stops the fan-out
            logger.debug("Push to %s failed: %s", identity or "channel", e)
            return False
