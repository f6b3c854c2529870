"""Status flattening and throttled broadcast."""

from .flatten import flatten
from .gate import ThrottledBroadcastGate

__all__ = ["flatten", "ThrottledBroadcastGate"]
