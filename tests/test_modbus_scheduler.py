from datetime import timedelta

from modmqttgw.modbus_messages import MsgRegisterValues
from modmqttgw.modbus_scheduler import ModbusScheduler
from modmqttgw.modbus_types import ModbusSlaveAddressRange, RegisterType


class _Poll(ModbusSlaveAddressRange):
    def __init__(self, slave_id, register, refresh, last_read=None,
                 register_type=RegisterType.HOLDING, count=1):
        super().__init__(slave_id, register, register_type, count)
        self.refresh = refresh
        self.last_read = last_read


def _scheduler(*polls):
    scheduler = ModbusScheduler()
    spec = {}
    for poll in polls:
        spec.setdefault(poll.slave_id, []).append(poll)
    scheduler.set_poll_specification(spec)
    return scheduler


def test_empty_specification_has_nothing_to_do():
    due, wait = ModbusScheduler().get_registers_to_poll(100.0)
    assert due == {}
    assert wait == timedelta.max


def test_never_read_register_is_due():
    refresh = timedelta(seconds=1)
    poll = _Poll(1, 2, refresh)
    due, wait = _scheduler(poll).get_registers_to_poll(10.0)
    assert due == {1: [poll]}
    assert wait == refresh


def test_recently_read_register_is_not_due():
    refresh = timedelta(seconds=1)
    poll = _Poll(1, 2, refresh, last_read=10.0)
    due, wait = _scheduler(poll).get_registers_to_poll(10.25)
    assert due == {}
    assert wait + timedelta(seconds=0.25) == refresh


def test_register_is_due_exactly_at_refresh():
    refresh = timedelta(seconds=2)
    poll = _Poll(3, 7, refresh, last_read=5.0)
    due, wait = _scheduler(poll).get_registers_to_poll(7.0)
    assert due == {3: [poll]}
    assert wait == refresh


def test_wait_is_shortest_of_all_registers():
    slow = _Poll(1, 1, timedelta(seconds=10), last_read=0.0)
    fast = _Poll(2, 1, timedelta(seconds=1), last_read=0.0)
    due, wait = _scheduler(slow, fast).get_registers_to_poll(0.5)
    assert due == {}
    assert wait + timedelta(seconds=0.5) == fast.refresh


def test_due_registers_grouped_by_slave():
    a = _Poll(2, 1, timedelta(seconds=1))
    b = _Poll(1, 5, timedelta(seconds=1))
    c = _Poll(1, 6, timedelta(seconds=1), last_read=100.0)
    due, _ = _scheduler(a, b, c).get_registers_to_poll(100.5)
    assert due == {1: [b], 2: [a]}
    assert list(due) == [1, 2]


def test_poll_specification_is_returned():
    poll = _Poll(1, 2, timedelta(seconds=1))
    scheduler = _scheduler(poll)
    assert scheduler.poll_specification == {1: [poll]}


def test_find_register_poll_matches_overlapping_range():
    poll = _Poll(1, 10, timedelta(seconds=1), count=4)
    scheduler = _scheduler(poll)
    values = MsgRegisterValues(1, RegisterType.HOLDING, 12, [5])
    assert scheduler.find_register_poll(values) is poll


def test_find_register_poll_ignores_other_slave_and_type():
    poll = _Poll(1, 10, timedelta(seconds=1), count=4)
    scheduler = _scheduler(poll)
    assert scheduler.find_register_poll(
        MsgRegisterValues(2, RegisterType.HOLDING, 10, [1])
    ) is None
    assert scheduler.find_register_poll(
        MsgRegisterValues(1, RegisterType.INPUT, 10, [1])
    ) is None
    assert scheduler.find_register_poll(
        MsgRegisterValues(1, RegisterType.HOLDING, 14, [1])
    ) is None