"""
Owning-context guard for loop-confined state.

The connection registry, the socket sends and the broadcast gate state
all live on one asyncio event loop. Entry points that may be reached
from worker threads check is_owner() and, when called from elsewhere,
post themselves back onto that loop with post().
"""

import asyncio
import logging
from typing import Any, Callable, Optional

logger = logging.getLogger("ha_beacon.hub.owner")


class LoopOwner:
    """
    The single event loop that owns hub state.

    Constructed inside a running loop, the owner is bound to that loop
    immediately; otherwise it stays unbound until bind() is called.
    """

    def __init__(self, loop: Optional[asyncio.AbstractEventLoop] = None):
        if loop is None:
            try:
                # created on a loop: that loop owns us from the start
                loop = asyncio.get_running_loop()
            except RuntimeError:
                # created outside any loop; start_listening() binds later
                pass
        self._loop = loop

    @property
    def loop(self) -> Optional[asyncio.AbstractEventLoop]:
        return self._loop

    @property
    def is_bound(self) -> bool:
        return self._loop is not None

    def bind(self, loop: Optional[asyncio.AbstractEventLoop] = None) -> asyncio.AbstractEventLoop:
        """Bind to ``loop``, or to the running loop when omitted."""
        self._loop = loop or asyncio.get_running_loop()
        return self._loop

    def is_owner(self) -> bool:
        """
        True when called from the thread running the owning loop.

        Before a loop is bound there is no owner yet and every caller
        is treated as the owner.
        """
        if self._loop is None:
            return True
        try:
            return asyncio.get_running_loop() is self._loop
        except RuntimeError:
            # no loop running in this thread
            return False

    def post(self, fn: Callable[..., Any], *args: Any) -> bool:
        """
        Queue ``fn(*args)`` onto the owning loop.

        Calls are run in the order they were posted and never inline.
        Returns False (and drops the call) if the loop is gone.
        """
        if self._loop is None:
            logger.warning("No owning loop bound, dropping %s", getattr(fn, "__qualname__", fn))
            return False
        try:
            self._loop.call_soon_threadsafe(fn, *args)
        except RuntimeError as e:
            logger.warning(
                "Owning loop unavailable, dropping %s: %s",
                getattr(fn, "__qualname__", fn), e,
            )
            return False
        return True
