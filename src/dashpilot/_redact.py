"""Helpers for safe debug logging.

dashpilot logs wire traffic and device identities at DEBUG.  Hardware
addresses identify a specific adapter (and therefore a specific car), so
they are masked before they reach a log record.
"""

from __future__ import annotations

import re
from collections.abc import Mapping, Sequence
from typing import Any

_SENSITIVE_VALUE_KEYS: frozenset[str] = frozenset(
    {
        "address",
        "mac",
        "lastconnectedbluetoothdevice",
        "last_device_id",
    }
)

_MAC_RE = re.compile(r"\b([0-9A-Fa-f]{2})(?:[:-][0-9A-Fa-f]{2}){4}[:-]([0-9A-Fa-f]{2})\b")


def mask_address(value: str) -> str:
    """Keep only the first and last octet of any MAC-style address in *value*."""
    return _MAC_RE.sub(lambda m: f"{m.group(1)}:**:**:**:**:{m.group(2)}", value)


def redact_for_log(value: Any, *, max_string: int = 512, _depth: int = 0) -> Any:
    """Return a redacted copy of *value* suitable for debug logs."""
    if _depth > 20:
        return "<max-depth>"

    if value is None:
        return None

    if isinstance(value, str):
        value = mask_address(value)
        if len(value) > max_string:
            return f"{value[:max_string]}…<truncated>"
        return value

    if isinstance(value, (int, float, bool)):
        return value

    if isinstance(value, (bytes, bytearray)):
        text = bytes(value).decode("ascii", errors="replace")
        return redact_for_log(text, max_string=max_string, _depth=_depth + 1)

    if isinstance(value, Mapping):
        redacted: dict[str, Any] = {}
        for k, v in value.items():
            key = str(k)
            if key.lower() in _SENSITIVE_VALUE_KEYS and v is not None:
                redacted[key] = "<redacted>"
            else:
                redacted[key] = redact_for_log(v, max_string=max_string, _depth=_depth + 1)
        return redacted

    if isinstance(value, Sequence) and not isinstance(value, (str, bytes, bytearray)):
        return [redact_for_log(v, max_string=max_string, _depth=_depth + 1) for v in value]

    # Fallback: represent unknown objects without dumping internals.
    return mask_address(repr(value))
