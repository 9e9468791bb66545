"""Messages exchanged between the MQTT side and the modbus worker."""

from __future__ import annotations

import copy
import logging
import time
from collections import defaultdict
from collections.abc import Iterable, Sequence
from dataclasses import dataclass
from datetime import timedelta
from enum import Enum

from .debugtools import DebugError
from .modbus_types import ModbusAddressRange, ModbusSlaveAddressRange, RegisterType

log = logging.getLogger(__name__)


class PublishMode(Enum):
    ON_CHANGE = "on_change"
    EVERY_POLL = "every_poll"


class MsgRegisterValues(ModbusSlaveAddressRange):
    """Register values read from or to be written to a slave."""

    def __init__(
        self,
        slave_id: int,
        register_type: RegisterType,
        register: int,
        registers: Sequence[int],
        command_id: int = 0,
    ) -> None:
        values = list(registers)
        super().__init__(slave_id, register, register_type, len(values))
        self.registers = values
        self.command_id = command_id
        self.creation_time = time.monotonic()

    def has_command_id(self) -> bool:
        return self.command_id != 0


class MsgRegisterReadFailed(ModbusSlaveAddressRange):
    def __init__(
        self, slave_id: int, register_type: RegisterType, register: int, register_count: int
    ) -> None:
        super().__init__(slave_id, register, register_type, register_count)


class MsgRegisterWriteFailed(ModbusSlaveAddressRange):
    def __init__(
        self, slave_id: int, register_type: RegisterType, register: int, register_count: int
    ) -> None:
        super().__init__(slave_id, register, register_type, register_count)


class MsgRegisterPoll(ModbusSlaveAddressRange):
    """A register range to poll; ``refresh`` is None until a poll period is known."""

    def __init__(
        self, slave_id: int, register: int, register_type: RegisterType, count: int = 1
    ) -> None:
        super().__init__(slave_id, register, register_type, count)
        if register < 0:
            raise DebugError("Invalid register number")
        if count <= 0:
            raise DebugError("Count cannot be 0 or negative")
        self.refresh: timedelta | None = None
        self.publish_mode = PublishMode.ON_CHANGE

    def is_same_as(self, other: ModbusAddressRange) -> bool:
        if not super().is_same_as(other):
            return False
        return self.slave_id == getattr(other, "slave_id", None)

    def merge(self, other: ModbusAddressRange) -> None:
        """Extend the range and keep the shortest poll period."""
        super().merge(other)
        other_refresh = getattr(other, "refresh", None)
        if self.refresh is None:
            self.refresh = other_refresh
        elif other_refresh is not None and self.refresh > other_refresh:
            self.refresh = other_refresh
            log.debug(
                "Setting refresh %dms on existing register %d",
                self.refresh // timedelta(milliseconds=1),
                self.register,
            )


class MsgRegisterPollSpecification:
    """The set of register ranges a network should poll."""

    def __init__(self, network_name: str) -> None:
        self.network_name = network_name
        self.registers: list[MsgRegisterPoll] = []

    def group(self) -> None:
        """Join consecutive ranges of the same slave and type; overlaps are left alone."""
        buckets: defaultdict[int, defaultdict[RegisterType, list[MsgRegisterPoll]]]
        buckets = defaultdict(lambda: defaultdict(list))
        for reg in self.registers:
            buckets[reg.slave_id][reg.register_type].append(copy.copy(reg))

        result: list[MsgRegisterPoll] = []
        for slave_id in sorted(buckets):
            by_type = buckets[slave_id]
            for register_type in sorted(by_type):
                regs = sorted(by_type[register_type], key=lambda r: r.register)
                grouped = [regs[0]]
                for reg in regs[1:]:
                    if grouped[-1].is_consecutive_of(reg):
                        grouped[-1].merge(reg)
                    else:
                        grouped.append(reg)
                result.extend(grouped)
        self.registers = result

    def merge(self, poll: MsgRegisterPoll) -> None:
        """Merge ``poll`` with every overlapping range, or add it as a new one."""
        overlapped = [
            reg
            for reg in self.registers
            if poll.slave_id == reg.slave_id and poll.overlaps(reg)
        ]
        self.registers = [reg for reg in self.registers if reg not in overlapped]

        added = copy.copy(poll)
        if not overlapped:
            log.debug(
                "Adding new register %d.%d (%d) type=%s refresh=%s on network %s",
                poll.slave_id,
                poll.register,
                poll.count,
                poll.register_type.name,
                poll.refresh,
                self.network_name,
            )
        for reg in overlapped:
            added.merge(reg)
        self.registers.append(added)

    def merge_all(self, polls: Iterable[MsgRegisterPoll]) -> None:
        for poll in polls:
            self.merge(poll)


@dataclass
class MsgModbusNetworkState:
    network_name: str
    is_up: bool


@dataclass
class MsgMqttNetworkState:
    is_up: bool


@dataclass
class EndWorkMessage:
    """Tells the modbus worker to exit."""