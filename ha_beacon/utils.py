"""Shared helpers."""

import json
from typing import Any


def compact_json(value: Any) -> str:
    """Compact canonical JSON text: no whitespace, sorted keys, UTF-8 kept."""
    return json.dumps(value, separators=(",", ":"), sort_keys=True, ensure_ascii=False)
