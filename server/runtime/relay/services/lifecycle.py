"""
Ephemeral Chat Relay - Session Lifecycle

ChatHub owns all shared chat state and drives each identity through
Absent -> Connected -> GracePeriod -> Absent, plus the idle sweep.
"""

import logging
import threading
import time
from typing import Callable, List, Optional, Tuple

from relay.config import Settings
from relay.errors import ChannelWriteError
from relay.models.chat import Cancelable, Channel, Message, Session
from relay.models.events import (
    MessageDeletedEvent,
    MessageEvent,
    ReadReceiptEvent,
    SystemEvent,
    UserListEvent,
)
from relay.models.requests import ChatPost
from relay.services.admission import AdmissionController
from relay.services.broadcaster import Broadcaster
from relay.services.channel import PING_FRAME
from relay.services.message_store import MessageStore
from relay.services.scheduler import LoopScheduler
from relay.services.session_registry import SessionRegistry

logger = logging.getLogger(__name__)


class ChatHub:
    """
    Single coordination point for the chat room.

    Every mutation happens under ``_lock``; the lock is released before
    events are fanned out. Timers are scheduled through ``scheduler`` and
    are always canceled before being superseded.
    """

    def __init__(
        self,
        settings: Settings,
        scheduler=None,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.settings = settings
        self.scheduler = scheduler or LoopScheduler()
        self._clock = clock
        self._lock = threading.RLock()

        self.registry = SessionRegistry(clock=clock, nickname_max_chars=settings.NICKNAME_MAX_CHARS)
        self.store = MessageStore(
            max_messages=settings.MAX_MESSAGES,
            max_text_chars=settings.MESSAGE_MAX_CHARS,
            max_attachment_bytes=settings.MAX_ATTACHMENT_BYTES,
        )
        self.admission = AdmissionController(self.registry, max_origins=settings.MAX_ORIGINS)
        self.broadcaster = Broadcaster(self.registry)

        self._sweep_handle: Optional[Cancelable] = None
        self._running = False

    # -- background clock ---------------------------------------------------

    def start(self) -> None:
        """Arm the periodic idle sweep"""
        with self._lock:
            if self._running:
                return
            self._running = True
            self._arm_sweep()
        logger.info(
            "Idle sweep every %.0fs (idle timeout %.0fs)",
            self.settings.SWEEP_INTERVAL_SECONDS,
            self.settings.IDLE_TIMEOUT_SECONDS,
        )

    def stop(self) -> None:
        """Cancel all timers and end every open stream"""
        with self._lock:
            self._running = False
            if self._sweep_handle is not None:
                self._sweep_handle.cancel()
                self._sweep_handle = None
            sessions = self.registry.snapshot()
            for session in sessions:
                session.cancel_tasks()
        for session in sessions:
            session.channel.close()

    def _arm_sweep(self) -> None:
        self._sweep_handle = self.scheduler.call_later(self.settings.SWEEP_INTERVAL_SECONDS, self._sweep_tick)

    def _sweep_tick(self) -> None:
        try:
            self.sweep_idle()
        except Exception:
            logger.exception("Idle sweep failed")
        finally:
            with self._lock:
                if self._running:
                    self._arm_sweep()

    # -- membership ---------------------------------------------------------

    def connect(
        self,
        identity: str,
        origin: str,
        channel: Channel,
        display_name: Optional[str] = None,
    ) -> Session:
        """
        Admit and register a push channel for an identity.

        A reconnect (including one during the grace period) resumes the
        existing session silently; only a fresh session is announced.

        Raises:
            AdmissionRejected: the origin quota is exhausted
        """
        with self._lock:
            self.admission.try_admit(identity, origin)
            previous = self.registry.get(identity)
            superseded = previous.channel if previous is not None and previous.channel is not channel else None
            session, created = self.registry.upsert(identity, origin, channel, display_name)
            session.keepalive = self._schedule_keepalive(identity, channel)
            history = self.store.history()
            roster = self.registry.roster()
            name = session.display_name

        if superseded is not None:
            superseded.close()
        for message in history:
            self.broadcaster.send(channel, MessageEvent.from_message(message))

        if created:
            logger.info("%s joined from %s (%d online)", name, origin, len(roster))
            self.broadcaster.publish(SystemEvent(text=f"{name} joined the chat. ({len(roster)} online)"))
        else:
            logger.info("%s reconnected from %s", name, origin)
        self._publish_roster(roster)
        return session

    def channel_closed(self, identity: str, channel: Channel) -> bool:
        """
        Start the grace period for a closed stream.

        Ignored when the channel has already been superseded or the
        session is gone.
        """
        with self._lock:
            session = self.registry.get(identity)
            if session is None or session.channel is not channel:
                return False
            session.cancel_tasks()
            session.pending_eviction = self.scheduler.call_later(
                self.settings.GRACE_PERIOD_SECONDS, self._confirm_disconnect, identity, channel
            )
        logger.debug("%s stream closed; grace period started", identity)
        return True

    def _confirm_disconnect(self, identity: str, channel: Channel) -> None:
        with self._lock:
            session = self.registry.get(identity)
            if session is None or session.channel is not channel:
                return
            session.pending_eviction = None
            self.registry.remove(identity)
            roster = self.registry.roster()
        logger.info("%s left (%d online)", session.display_name, len(roster))
        self._announce_departure(session.display_name, roster)

    def sweep_idle(self) -> List[str]:
        """
        Evict connected sessions idle longer than the configured threshold.

        Sessions already in their grace period are left to their timer.

        Returns:
            Identities that were evicted
        """
        now = self._clock()
        threshold = self.settings.IDLE_TIMEOUT_SECONDS
        with self._lock:
            stale = [
                s for s in self.registry.snapshot()
                if s.pending_eviction is None and now - s.last_activity_at > threshold
            ]
            for session in stale:
                self.registry.remove(session.identity)
            roster = self.registry.roster()

        if not stale:
            return []

        for session in stale:
            session.channel.close()
            logger.info("%s evicted after %.0fs idle", session.display_name, now - session.last_activity_at)
            self.broadcaster.publish(SystemEvent(text=f"{session.display_name} left the chat."))
        self._publish_roster(roster)
        return [s.identity for s in stale]

    # -- keep-alive ---------------------------------------------------------

    def _schedule_keepalive(self, identity: str, channel: Channel) -> Cancelable:
        return self.scheduler.call_later(
            self.settings.KEEPALIVE_INTERVAL_SECONDS, self._keepalive_tick, identity, channel
        )

    def _keepalive_tick(self, identity: str, channel: Channel) -> None:
        with self._lock:
            if not self._is_live(identity, channel):
                return
            self.registry.get(identity).keepalive = None

        try:
            channel.send(PING_FRAME)
        except ChannelWriteError as e:
            # Membership changes only through grace or idle eviction
            logger.debug("Keep-alive for %s stopped: %s", identity, e)
            return

        with self._lock:
            session = self.registry.get(identity)
            if self._is_live(identity, channel) and session.keepalive is None:
                session.keepalive = self._schedule_keepalive(identity, channel)

    def _is_live(self, identity: str, channel: Channel) -> bool:
        session = self.registry.get(identity)
        return session is not None and session.channel is channel and session.pending_eviction is None

    # -- actions ------------------------------------------------------------

    def post(self, identity: str, payload: ChatPost) -> Optional[Message]:
        with self._lock:
            session = self.registry.touch(identity)
            if session is None:
                return None
            message = self.store.append(identity, session.display_name, payload)
        if message is None:
            return None
        self.broadcaster.publish(MessageEvent.from_message(message))
        return message

    def delete_message(self, identity: str, message_id: int) -> bool:
        with self._lock:
            session = self.registry.touch(identity)
            if session is None or not self.store.mark_deleted(message_id, identity):
                return False
            name = session.display_name
        self.broadcaster.publish(MessageDeletedEvent(id=message_id, user=name))
        return True

    def mark_read(self, identity: str, message_id: int) -> Optional[int]:
        """
        Returns:
            New distinct reader count, or None when nothing changed
        """
        with self._lock:
            if self.registry.touch(identity) is None:
                return None
            message = self.store.get(message_id)
            if message is not None and identity in message.readers:
                return None
            count = self.store.add_reader(message_id, identity)
        if count is None:
            return None
        self.broadcaster.publish(ReadReceiptEvent(id=message_id, read_count=count))
        return count

    def rename(self, identity: str, nickname) -> Optional[Tuple[str, str]]:
        with self._lock:
            if self.registry.touch(identity) is None:
                return None
            change = self.registry.rename(identity, nickname)
            roster = self.registry.roster()
        if change is None:
            return None
        old, new = change
        logger.info("%s renamed to %s", old, new)
        self.broadcaster.publish(SystemEvent(text=f"{old} is now known as {new}."))
        self._publish_roster(roster)
        return change

    def heartbeat(self, identity: str) -> bool:
        with self._lock:
            return self.registry.touch(identity) is not None

    # -- helpers ------------------------------------------------------------

    def stats(self) -> dict:
        with self._lock:
            return {
                "sessions": len(self.registry),
                "origins": len(self.registry.origins()),
                "max_origins": self.admission.max_origins,
                "messages": len(self.store),
            }

    def _announce_departure(self, name: str, roster: List[str]) -> None:
        self.broadcaster.publish(SystemEvent(text=f"{name} left the chat."))
        self._publish_roster(roster)

    def _publish_roster(self, roster: List[str]) -> None:
        self.broadcaster.publish(UserListEvent(users=roster, count=len(roster)))
