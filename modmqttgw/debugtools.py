"""Helpers for debug output."""

from __future__ import annotations

from collections.abc import Sequence

from .modbus_types import ModMqttError

_MAX_VALUES = 10


class DebugError(ModMqttError):
    """Raised on internal consistency checks."""


def registers_to_str(data: Sequence[int]) -> str:
    """Render register values as hex, showing at most ten of them."""
    parts = []
    for count, value in enumerate(data, start=1):
        parts.append(f"[{value:x}]")
        if count == _MAX_VALUES:
            parts.append(f" (… and {len(data) - _MAX_VALUES} more)")
            break
    return "".join(parts)