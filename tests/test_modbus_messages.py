from datetime import timedelta

import pytest

from modmqttgw.debugtools import DebugError
from modmqttgw.modbus_messages import (
    MsgRegisterPoll,
    MsgRegisterPollSpecification,
    MsgRegisterReadFailed,
    MsgRegisterValues,
    PublishMode,
)
from modmqttgw.modbus_types import RegisterType

H = RegisterType.HOLDING


def poll(slave, register, count=1, refresh_ms=None, register_type=H):
    p = MsgRegisterPoll(slave, register, register_type, count)
    if refresh_ms is not None:
        p.refresh = timedelta(milliseconds=refresh_ms)
    return p


def spans(spec):
    return [(r.slave_id, r.first_register, r.last_register) for r in spec.registers]


def test_register_values_count_follows_data():
    msg = MsgRegisterValues(1, H, 10, [5, 6, 7])
    assert msg.count == 3
    assert msg.registers == [5, 6, 7]
    assert not msg.has_command_id()


def test_register_values_with_command_id():
    msg = MsgRegisterValues(1, H, 10, [5], 7)
    assert msg.has_command_id()
    assert msg.command_id == 7


def test_read_failed_argument_order():
    msg = MsgRegisterReadFailed(2, RegisterType.COIL, 9, 4)
    assert (msg.slave_id, msg.register_type, msg.register, msg.count) == (
        2,
        RegisterType.COIL,
        9,
        4,
    )


def test_poll_rejects_negative_register():
    with pytest.raises(DebugError, match="Invalid register number"):
        MsgRegisterPoll(1, -1, H)


@pytest.mark.parametrize("count", [0, -2])
def test_poll_rejects_bad_count(count):
    with pytest.raises(DebugError, match="Count cannot be 0 or negative"):
        MsgRegisterPoll(1, 1, H, count)


def test_poll_defaults():
    p = MsgRegisterPoll(1, 1, H)
    assert p.count == 1
    assert p.refresh is None
    assert p.publish_mode is PublishMode.ON_CHANGE


def test_poll_is_same_as_checks_slave():
    assert poll(1, 3, 2).is_same_as(poll(1, 3, 2))
    assert not poll(1, 3, 2).is_same_as(poll(2, 3, 2))


@pytest.mark.parametrize(
    "mine, other, expected",
    [(None, 200, 200), (100, 50, 50), (50, None, 50), (50, 100, 50)],
)
def test_merge_keeps_shortest_refresh(mine, other, expected):
    a = poll(1, 1, refresh_ms=mine)
    a.merge(poll(1, 2, refresh_ms=other))
    assert a.refresh == timedelta(milliseconds=expected)


def test_group_joins_consecutive_registers():
    spec = MsgRegisterPollSpecification("net")
    spec.registers = [poll(1, 3), poll(1, 1), poll(1, 2), poll(1, 5)]
    spec.group()
    assert spans(spec) == [(1, 1, 3), (1, 5, 5)]


def test_group_orders_by_slave_then_type():
    spec = MsgRegisterPollSpecification("net")
    spec.registers = [
        poll(2, 1),
        poll(1, 1, register_type=RegisterType.INPUT),
        poll(1, 1, register_type=RegisterType.COIL),
    ]
    spec.group()
    assert [(r.slave_id, r.register_type) for r in spec.registers] == [
        (1, RegisterType.COIL),
        (1, RegisterType.INPUT),
        (2, H),
    ]


def test_group_does_not_join_overlapping():
    spec = MsgRegisterPollSpecification("net")
    spec.registers = [poll(1, 4), poll(1, 4)]
    spec.group()
    assert spans(spec) == [(1, 4, 4), (1, 4, 4)]


def test_group_uses_shortest_refresh():
    spec = MsgRegisterPollSpecification("net")
    spec.registers = [poll(1, 1, refresh_ms=100), poll(1, 2, refresh_ms=50)]
    spec.group()
    assert len(spec.registers) == 1
    assert spec.registers[0].refresh == timedelta(milliseconds=50)


def test_merge_adds_new_register():
    spec = MsgRegisterPollSpecification("net")
    spec.merge(poll(1, 1))
    spec.merge(poll(1, 10))
    assert spans(spec) == [(1, 1, 1), (1, 10, 10)]


def test_merge_joins_overlapping_ranges():
    spec = MsgRegisterPollSpecification("net")
    spec.merge_all([poll(1, 1, 3, refresh_ms=100), poll(1, 10, 2)])
    spec.merge(poll(1, 2, 9, refresh_ms=40))
    assert spans(spec) == [(1, 1, 11)]
    assert spec.registers[0].refresh == timedelta(milliseconds=40)


def test_merge_ignores_other_slaves():
    spec = MsgRegisterPollSpecification("net")
    spec.merge(poll(1, 1, 3))
    spec.merge(poll(2, 2, 3))
    assert spans(spec) == [(1, 1, 3), (2, 2, 4)]


def test_merge_does_not_modify_argument():
    spec = MsgRegisterPollSpecification("net")
    spec.merge(poll(1, 1, 5))
    incoming = poll(1, 3, 1)
    spec.merge(incoming)
    assert (incoming.register, incoming.count) == (3, 1)
    assert spans(spec) == [(1, 1, 5)]