"""
Ephemeral Chat Relay - Push Channels

A QueueChannel buffers frames for one open event stream. Writers never
block: a full or closed buffer fails the write instead.
"""

import asyncio
from typing import Optional

from relay.errors import ChannelWriteError

PING_FRAME = ": ping\n\n"


class QueueChannel:
    """Bounded frame buffer drained by a streaming response"""

    def __init__(self, maxsize: int = 256):
        self._queue: "asyncio.Queue[Optional[str]]" = asyncio.Queue(maxsize=maxsize)
        self.closed = False
        self._drained = False

    def send(self, frame: str) -> None:
        if self.closed:
            raise ChannelWriteError("channel is closed")
        try:
            self._queue.put_nowait(frame)
        except asyncio.QueueFull:
            raise ChannelWriteError("channel buffer is full") from None

    def close(self) -> None:
        if self.closed:
            return
        self.closed = True
        if self._queue.full():
            # Make room for the end-of-stream marker
            self._queue.get_nowait()
        self._queue.put_nowait(None)

    @property
    def finished(self) -> bool:
        """Closed and every buffered frame has been read"""
        return self._drained

    async def next_frame(self, timeout: float) -> Optional[str]:
        """
        Wait for the next frame.

        Returns:
            The frame, or None on timeout or end of stream (see ``finished``)
        """
        if self._drained:
            return None
        try:
            frame = await asyncio.wait_for(self._queue.get(), timeout)
        except asyncio.TimeoutError:
            return None
        if frame is None:
            self._drained = True
        return frame
