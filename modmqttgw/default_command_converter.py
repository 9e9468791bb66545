"""Conversion of MQTT command payloads to modbus register values."""

from __future__ import annotations

import json
import re
from typing import Any

from .modbus_types import ModMqttError

_UINT16_MAX = 0xFFFF
_INT32_MIN = -(2**31)
_INT32_MAX = 2**31 - 1

_C_INT_RE = re.compile(r"\s*([+-]?)(0[xX][0-9a-fA-F]+|0[0-7]*|[1-9][0-9]*)\s*")


class ConversionError(ModMqttError):
    """Raised when a value cannot be converted."""


def _parse_c_int(text: str) -> int:
    match = _C_INT_RE.fullmatch(text)
    if match is None:
        raise ValueError(f"not an integer: '{text}'")
    sign, digits = match.groups()
    if digits[:2].lower() == "0x":
        number = int(digits[2:], 16)
    elif len(digits) > 1 and digits.startswith("0"):
        number = int(digits[1:], 8)
    else:
        number = int(digits, 10)
    return -number if sign == "-" else number


def _mqtt_int(value: Any) -> int:
    if isinstance(value, (bool, int)):
        number = int(value)
    elif isinstance(value, float):
        number = int(value)
    else:
        text = value.decode() if isinstance(value, (bytes, bytearray)) else str(value)
        number = _parse_c_int(text)
    if not _INT32_MIN <= number <= _INT32_MAX:
        raise OverflowError(number)
    return number


def _to_uint16(value: Any) -> int:
    if isinstance(value, bool) or not isinstance(value, int):
        raise ConversionError(f"Conversion failed, register value {value!r} is not an integer")
    if 0 <= value <= _UINT16_MAX:
        return value
    raise ConversionError(f"Conversion failed, register value {value} out of range")


def parse_as_json(json_data: str | bytes, register_count: int) -> list[int]:
    """Read a JSON array of exactly ``register_count`` register values."""
    try:
        document = json.loads(json_data)
    except ValueError:
        document = None
    if not isinstance(document, list):
        raise ConversionError(
            "Only json array is supported when converting to multiple registers"
        )
    if len(document) != register_count:
        raise ConversionError(
            f"Wrong json array size ({len(document)}), need {register_count}"
        )
    return [_to_uint16(item) for item in document]


class DefaultCommandConverter:
    """Turns an MQTT payload into register values when no converter is set."""

    def to_modbus(self, value: Any, register_count: int) -> list[int]:
        """Convert ``value`` to ``register_count`` register values."""
        if register_count > 1:
            if isinstance(value, (bytes, bytearray)):
                value = value.decode()
            return parse_as_json(str(value), register_count)
        try:
            number = _mqtt_int(value)
        except ValueError:
            raise ConversionError("Failed to convert mqtt value to int16") from None
        except OverflowError:
            raise ConversionError("mqtt value is out of range") from None
        if 0 <= number <= _UINT16_MAX:
            return [number]
        raise ConversionError(f"Conversion failed, value {number} out of range")