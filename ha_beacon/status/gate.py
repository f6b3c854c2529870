"""
Throttled, de-duplicated status broadcast.

Sits between the status producer and the hub: flattens each submitted
status, drops it if nothing changed or if the previous send was less
than min_interval_ms ago, otherwise broadcasts it. Dropped updates are
not queued.

"Nothing changed" is JSON value equality: 1 and 1.0 are the same
number, but true is never equal to 1.
"""

import copy
import logging
import time
from typing import Any, Callable, Optional

from ..config import settings
from ..hub.owner import LoopOwner
from ..utils import compact_json
from .flatten import flatten

logger = logging.getLogger("ha_beacon.status.gate")


def json_equal(a: Any, b: Any) -> bool:
    """Structural equality of two decoded JSON values, bools kept apart from numbers."""
    if isinstance(a, bool) or isinstance(b, bool):
        return type(a) is type(b) and a == b
    if isinstance(a, dict) and isinstance(b, dict):
        return a.keys() == b.keys() and all(json_equal(a[k], b[k]) for k in a)
    if isinstance(a, list) and isinstance(b, list):
        return len(a) == len(b) and all(json_equal(x, y) for x, y in zip(a, b))
    return a == b


class ThrottledBroadcastGate:
    """Change detection + minimum interval in front of broadcast_json()."""

    def __init__(
        self,
        hub: Any,
        min_interval_ms: Optional[int] = None,
        owner: Optional[LoopOwner] = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        self._hub = hub
        self._min_interval = (
            min_interval_ms if min_interval_ms is not None else settings.broadcast.min_interval_ms
        ) / 1000.0
        self._owner = owner or hub.owner
        self._clock = clock

        self._last_flat: Optional[dict[str, Any]] = None
        self._last_sent_at: Optional[float] = None

    @property
    def last_flat(self) -> Optional[dict[str, Any]]:
        """Last broadcast flat document (None before the first send)."""
        return self._last_flat

    @property
    def last_sent_at(self) -> Optional[float]:
        return self._last_sent_at

    def reset(self) -> None:
        """Forget the last snapshot so the next submit always sends."""
        self._last_flat = None
        self._last_sent_at = None

    def submit(self, status: dict[str, Any], force: bool = False) -> bool:
        """
        Flatten ``status`` and broadcast it unless suppressed.

        Safe from any thread: off the owning loop a deep copy of the
        document is queued onto the loop and False is returned.

        Args:
            status: Nested status document
            force: Send even if unchanged or within the throttle window

        Returns:
            True if the document was broadcast by this call
        """
        if not self._owner.is_owner():
            self._owner.post(self.submit, copy.deepcopy(status), force)
            return False

        flat = flatten(status)

        if not force:
            if self._last_flat is not None and json_equal(flat, self._last_flat):
                return False
            if (
                self._last_sent_at is not None
                and self._clock() - self._last_sent_at < self._min_interval
            ):
                return False

        self._last_sent_at = self._clock()
        self._hub.broadcast_json(flat)
        self._last_flat = flat

        if logger.isEnabledFor(logging.DEBUG):
            logger.debug("[Status] flat broadcast: %s", compact_json(flat))
        return True
