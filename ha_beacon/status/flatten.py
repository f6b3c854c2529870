"""
Status flattener.

Turns the nested device status document into the flat, single-level
schema consumed by Home Assistant. Every field is always present: null
or missing values become "" so consumers never see null.

Key layout:
  device_id, id, is_online, is_in_use, has_info
  hygiene_<key>                              one level of hygieneState
  notifications_count
  notification_{category,description,errorNumber,id,text}   first notification
  notifications_<i>_<key>
  critical_errors_count,  critical_<i>_<key>
  other_notifications_count, other_notifications_<i>_<key>
  additional_status_fields_count
  additional_<i>_<key> | additional_<i>
"""

import copy
from typing import Any

from ..utils import compact_json

# (source key, count field, per-item prefix)
OBJECT_LISTS = (
    ("notifications", "notifications_count", "notifications"),
    ("criticalErrors", "critical_errors_count", "critical"),
    ("otherNotifications", "other_notifications_count", "other_notifications"),
)

FIRST_NOTIFICATION_FIELDS = ("category", "description", "errorNumber", "id", "text")

HYGIENE_PREFIX = "hygiene_"


def _str_or(value: Any, default: str = "") -> str:
    return value if isinstance(value, str) else default


def _bool_or_false(value: Any) -> bool:
    return value if isinstance(value, bool) else False


def _as_dict(value: Any) -> dict:
    return value if isinstance(value, dict) else {}


def _as_list(value: Any) -> list:
    return value if isinstance(value, list) else []


def flatten(status: dict[str, Any]) -> dict[str, Any]:
    """
    Build the flat status document from a nested one.

    Pure: the input is never modified and nested values are copied.

    Args:
        status: Nested status document (decoded JSON object)

    Returns:
        Flat document mapping field name to JSON value
    """
    status = _as_dict(status)
    flat: dict[str, Any] = {}

    def put(key: str, value: Any) -> None:
        if value is None:
            flat[key] = ""
        elif isinstance(value, (dict, list)):
            flat[key] = copy.deepcopy(value)
        else:
            flat[key] = value

    # Basics
    put("device_id", _str_or(status.get("deviceId"), _str_or(status.get("id"))))
    put("id", _str_or(status.get("id")))
    put("is_online", _bool_or_false(status.get("isOnline")))
    put("is_in_use", _bool_or_false(status.get("isInUse")))
    put("has_info", status.get("hasInfo"))

    # Hygiene
    for key, value in _as_dict(status.get("hygieneState")).items():
        put(f"{HYGIENE_PREFIX}{key}", value)

    # Notifications, critical errors, other notifications
    for source, count_key, prefix in OBJECT_LISTS:
        items = _as_list(status.get(source))
        put(count_key, len(items))

        if source == "notifications":
            first = items[0] if items and isinstance(items[0], dict) else {}
            for name in FIRST_NOTIFICATION_FIELDS:
                put(f"notification_{name}", first.get(name))

        for i, item in enumerate(items):
            for key, value in _as_dict(item).items():
                put(f"{prefix}_{i}_{key}", value)

    # Additional status (heterogeneous)
    additional = _as_list(status.get("additionalStatusFields"))
    put("additional_status_fields_count", len(additional))
    for i, item in enumerate(additional):
        if isinstance(item, dict):
            for key, value in item.items():
                put(f"additional_{i}_{key}", value)
        elif isinstance(item, list):
            put(f"additional_{i}", compact_json(item))
        else:
            put(f"additional_{i}", item)

    return flat
