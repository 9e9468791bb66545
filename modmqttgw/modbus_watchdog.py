"""Watches command results and decides when a network must reconnect."""

from __future__ import annotations

import dataclasses
import logging
import os
import time
from collections.abc import Callable
from datetime import timedelta
from typing import Any

from .config import ModbusWatchdogConfig
from .logsetup import TRACE

log = logging.getLogger(__name__)

_DEVICE_CHECK_PERIOD = timedelta(milliseconds=300)


class ModbusWatchdog:
    """Tracks the time since the last successful command.

    For RTU networks it also checks whether the serial device still exists.
    Commands are expected to expose a boolean ``executed_ok``.
    """

    def __init__(self, clock: Callable[[], float] = time.monotonic) -> None:
        self._clock = clock
        self._config = ModbusWatchdogConfig()
        self._last_successful_command_time = clock()
        self._last_device_check_time: float | None = None
        self._last_command_ok = True
        self._device_removed = False

    def configure(self, config: ModbusWatchdogConfig) -> None:
        self._config = dataclasses.replace(config)
        self.reset()
        log.debug(
            "Watchdog initialized. Watch period set to %ds",
            int(self._config.watch_period.total_seconds()),
        )
        if self._config.device_path:
            log.debug("Monitoring %s existence", self._config.device_path)

    @property
    def device_path(self) -> str:
        return self._config.device_path

    @property
    def is_device_removed(self) -> bool:
        return self._device_removed

    def inspect_command(self, command: Any) -> None:
        """Record the result of an executed command."""
        ok = bool(command.executed_ok)
        if ok:
            self.reset()
        elif self._config.device_path:
            now = self._clock()
            check_due = (
                self._last_device_check_time is None
                or timedelta(seconds=now - self._last_device_check_time) > _DEVICE_CHECK_PERIOD
            )
            if not self._device_removed and (self._last_command_ok or check_due):
                self._device_removed = not os.path.exists(self._config.device_path)
                self._last_device_check_time = now
                if self._device_removed:
                    log.warning("Detected device %s removal", self._config.device_path)
        self._last_command_ok = ok

    def is_reconnect_required(self) -> bool:
        if self._device_removed:
            return True
        error_period = self.current_error_period()
        log.log(TRACE, "Watchdog: current error period is %s", error_period)
        return error_period > self._config.watch_period

    def reset(self) -> None:
        self._last_successful_command_time = self._clock()
        self._device_removed = False
        self._last_command_ok = True

    def current_error_period(self) -> timedelta:
        return timedelta(seconds=self._clock() - self._last_successful_command_time)