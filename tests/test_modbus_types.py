import pytest

from modmqttgw.modbus_types import (
    ModbusAddressRange,
    ModbusSlaveAddressRange,
    RegisterType,
)


def test_single_register_bounds():
    rng = ModbusAddressRange(10, RegisterType.COIL, 1)
    assert rng.first_register == 10
    assert rng.last_register == 10


def test_last_register_spans_count():
    rng = ModbusAddressRange(4, RegisterType.HOLDING, 3)
    assert rng.last_register - rng.first_register + 1 == rng.count


@pytest.mark.parametrize(
    "a, b",
    [
        ((1, 3), (3, 2)),
        ((5, 1), (5, 1)),
        ((1, 10), (4, 2)),
    ],
)
def test_overlapping_ranges(a, b):
    ra = ModbusAddressRange(a[0], RegisterType.HOLDING, a[1])
    rb = ModbusAddressRange(b[0], RegisterType.HOLDING, b[1])
    assert ra.overlaps(rb)
    assert rb.overlaps(ra)


def test_different_types_never_overlap():
    ra = ModbusAddressRange(1, RegisterType.HOLDING, 5)
    rb = ModbusAddressRange(1, RegisterType.INPUT, 5)
    assert not ra.overlaps(rb)


def test_adjacent_ranges_are_consecutive_not_overlapping():
    ra = ModbusAddressRange(1, RegisterType.HOLDING, 2)
    rb = ModbusAddressRange(3, RegisterType.HOLDING, 1)
    assert not ra.overlaps(rb)
    assert ra.is_consecutive_of(rb)
    assert rb.is_consecutive_of(ra)


def test_gap_is_not_consecutive():
    ra = ModbusAddressRange(1, RegisterType.HOLDING, 1)
    rb = ModbusAddressRange(3, RegisterType.HOLDING, 1)
    assert not ra.is_consecutive_of(rb)


@pytest.mark.parametrize(
    "a, b",
    [((1, 2), (3, 2)), ((10, 1), (2, 3)), ((1, 10), (3, 2)), ((7, 2), (7, 2))],
)
def test_merge_covers_both_ranges(a, b):
    ra = ModbusAddressRange(a[0], RegisterType.INPUT, a[1])
    rb = ModbusAddressRange(b[0], RegisterType.INPUT, b[1])
    expected_first = min(ra.first_register, rb.first_register)
    expected_last = max(ra.last_register, rb.last_register)
    ra.merge(rb)
    assert ra.first_register == expected_first
    assert ra.last_register == expected_last


def test_is_same_as():
    ra = ModbusAddressRange(2, RegisterType.COIL, 2)
    assert ra.is_same_as(ModbusAddressRange(2, RegisterType.COIL, 2))
    assert not ra.is_same_as(ModbusAddressRange(2, RegisterType.BIT, 2))
    assert not ra.is_same_as(ModbusAddressRange(2, RegisterType.COIL, 1))
    assert not ra.is_same_as(ModbusAddressRange(3, RegisterType.COIL, 2))


def test_slave_range_keeps_slave_and_range():
    rng = ModbusSlaveAddressRange(7, 12, RegisterType.BIT, 2)
    assert rng.slave_id == 7
    assert rng.register == 12
    assert rng.register_type is RegisterType.BIT
    assert rng.count == 2