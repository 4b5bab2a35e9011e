import json

import pytest

from relay.config import Settings
from relay.errors import ChannelWriteError
from relay.services.channel import PING_FRAME
from relay.services.lifecycle import ChatHub


class ManualHandle:
    def __init__(self, when, seq, callback, args):
        self.when = when
        self.seq = seq
        self.callback = callback
        self.args = args
        self.cancelled = False

    def cancel(self):
        self.cancelled = True


class ManualScheduler:
    """Virtual clock; callbacks fire only when time is advanced"""

    def __init__(self):
        self.now = 0.0
        self._handles = []
        self._seq = 0

    def time(self):
        return self.now

    def call_later(self, delay, callback, *args):
        self._seq += 1
        handle = ManualHandle(self.now + delay, self._seq, callback, args)
        self._handles.append(handle)
        return handle

    @property
    def pending(self):
        return [h for h in self._handles if not h.cancelled]

    def advance(self, seconds):
        target = self.now + seconds
        while True:
            due = [h for h in self._handles if not h.cancelled and h.when <= target]
            if not due:
                break
            handle = min(due, key=lambda h: (h.when, h.seq))
            self._handles.remove(handle)
            self.now = max(self.now, handle.when)
            handle.callback(*handle.args)
        self._handles = [h for h in self._handles if not h.cancelled]
        self.now = target


class RecordingChannel:
    """Push channel that keeps every frame it accepted"""

    def __init__(self):
        self.frames = []
        self.closed = False
        self.fail = False

    def send(self, frame):
        if self.closed:
            raise ChannelWriteError("closed")
        if self.fail:
            raise ChannelWriteError("broken pipe")
        self.frames.append(frame)

    def close(self):
        self.closed = True

    def events(self, kind=None):
        parsed = [json.loads(f[len("data: "):]) for f in self.frames if f.startswith("data: ")]
        if kind is None:
            return parsed
        return [e for e in parsed if e["type"] == kind]

    def system_texts(self):
        return [e["text"] for e in self.events("system")]

    @property
    def pings(self):
        return sum(1 for f in self.frames if f == PING_FRAME)

    def clear(self):
        self.frames.clear()


@pytest.fixture
def settings():
    return Settings(
        MAX_ORIGINS=8,
        MAX_MESSAGES=50,
        GRACE_PERIOD_SECONDS=5.0,
        IDLE_TIMEOUT_SECONDS=300.0,
        SWEEP_INTERVAL_SECONDS=30.0,
        KEEPALIVE_INTERVAL_SECONDS=15.0,
        NICKNAME_MAX_CHARS=20,
        MAX_ATTACHMENT_BYTES=1024,
        GIF_API_KEY="",
    )


@pytest.fixture
def scheduler():
    return ManualScheduler()


@pytest.fixture
def hub(settings, scheduler):
    return ChatHub(settings, scheduler=scheduler, clock=scheduler.time)


@pytest.fixture
def connect(hub):
    """Connect an identity on a fresh recording channel"""

    def _connect(identity, origin=None, name=None):
        channel = RecordingChannel()
        hub.connect(identity, origin or f"10.0.0.{identity}", channel, name or identity.upper())
        return channel

    return _connect
