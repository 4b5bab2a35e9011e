"""
Ephemeral Chat Relay - Timer Scheduling

Grace timers, keep-alive pings and the idle sweep are all one-shot
callbacks scheduled through this interface and re-armed by their owner.
"""

import asyncio
from typing import Any, Callable, Optional

from relay.models.chat import Cancelable


class LoopScheduler:
    """Runs callbacks on the asyncio event loop serving requests"""

    def __init__(self, loop: Optional[asyncio.AbstractEventLoop] = None):
        self._loop = loop

    def call_later(self, delay: float, callback: Callable[..., Any], *args: Any) -> Cancelable:
        loop = self._loop or asyncio.get_running_loop()
        return loop.call_later(delay, callback, *args)
