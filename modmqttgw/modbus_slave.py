"""Per-slave settings of a modbus network."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import timedelta
from typing import Any

from .config import _to_ushort, parse_duration, read_optional_value

log = logging.getLogger(__name__)

_DEPRECATED_DELAYS = (
    ("delay_before_poll", "delay_before_command", "delay_before_command"),
    ("delay_before_first_poll", "delay_before_first_command", "delay_before_first_command"),
)


@dataclass
class ModbusSlaveConfig:
    """Delays and retry counts that apply to one slave."""

    address: int
    slave_name: str = ""
    delay_before_command: timedelta | None = None
    delay_before_first_command: timedelta | None = None
    max_write_retry_count: int = 0
    max_read_retry_count: int = 0

    @classmethod
    def from_yaml(cls, address: int, data: Any) -> ModbusSlaveConfig:
        """Build slave settings from a parsed YAML mapping."""
        config = cls(address=address)

        name = read_optional_value(data, "name", str)
        if name is not None:
            config.slave_name = name

        for old_key, new_key, attribute in _DEPRECATED_DELAYS:
            delay = read_optional_value(data, old_key, parse_duration)
            if delay is not None:
                log.warning(
                    "'%s' is deprecated and will be removed in future releases. "
                    "Rename it to '%s'",
                    old_key,
                    new_key,
                )
                setattr(config, attribute, delay)
            delay = read_optional_value(data, new_key, parse_duration)
            if delay is not None:
                setattr(config, attribute, delay)

        retries = read_optional_value(data, "write_retries", _to_ushort)
        if retries is not None:
            config.max_write_retry_count = retries
        retries = read_optional_value(data, "read_retries", _to_ushort)
        if retries is not None:
            config.max_read_retry_count = retries
        return config