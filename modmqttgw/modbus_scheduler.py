"""Decides which registers are due to be polled."""

from __future__ import annotations

import logging
from collections.abc import Mapping, Sequence
from datetime import timedelta
from typing import Any

from .logsetup import TRACE

log = logging.getLogger(__name__)


class ModbusScheduler:
    """Keeps the poll list of a network, grouped by slave id.

    Register polls are expected to expose ``register``, ``refresh`` (a
    ``timedelta``), ``last_read`` (a monotonic time in seconds, or None when
    never read) and ``overlaps(other)``.
    """

    def __init__(self) -> None:
        self._register_map: dict[int, list[Any]] = {}

    @property
    def poll_specification(self) -> dict[int, list[Any]]:
        return self._register_map

    def set_poll_specification(self, register_map: Mapping[int, Sequence[Any]]) -> None:
        self._register_map = {slave: list(regs) for slave, regs in register_map.items()}

    def find_register_poll(self, values: Any) -> Any | None:
        """Return the first poll of the same slave that overlaps ``values``."""
        return next(
            (reg for reg in self._register_map.get(values.slave_id, ()) if reg.overlaps(values)),
            None,
        )

    def get_registers_to_poll(
        self, time_point: float
    ) -> tuple[dict[int, list[Any]], timedelta]:
        """Return the registers due at ``time_point`` and the wait until the next one.

        The wait is ``timedelta.max`` when there is nothing to poll.
        """
        due: dict[int, list[Any]] = {}
        wait = timedelta.max
        for slave_id in sorted(self._register_map):
            for reg in self._register_map[slave_id]:
                if reg.last_read is None:
                    passed = None
                else:
                    passed = timedelta(seconds=time_point - reg.last_read)

                if passed is None or passed >= reg.refresh:
                    log.log(
                        TRACE,
                        "Register %d.%d (0x%x.0x%x) added, last read %s ago",
                        slave_id,
                        reg.register,
                        slave_id,
                        reg.register,
                        "never" if passed is None else passed,
                    )
                    due.setdefault(slave_id, []).append(reg)
                    time_to_poll = reg.refresh
                else:
                    time_to_poll = reg.refresh - passed

                if time_to_poll < wait:
                    wait = time_to_poll
                    log.log(
                        TRACE,
                        "Wait duration set to %s as next poll for register %d.%d",
                        time_to_poll,
                        slave_id,
                        reg.register,
                    )
        return due, wait