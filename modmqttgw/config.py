"""Configuration of modbus networks and the MQTT broker."""

from __future__ import annotations

import logging
import os
import re
from collections.abc import Callable, Mapping
from dataclasses import dataclass, field
from datetime import timedelta
from enum import Enum
from typing import Any, ClassVar, TypeVar

import yaml
from yaml.constructor import SafeConstructor

from .modbus_types import ModMqttError

log = logging.getLogger(__name__)

T = TypeVar("T")


class ConfigurationError(ModMqttError):
    """Raised for invalid configuration; carries the offending line when known."""

    def __init__(self, message: str, line: int | None = None) -> None:
        self.line_number = line if line is not None else 0
        if line is None:
            text = f"config error: {message}"
        else:
            text = f"config error(line {line}): {message}"
        super().__init__(text)


class YamlMapping(dict):
    """A mapping that remembers where it and its values were found."""

    def __init__(self, *args: Any, line: int | None = None, **kwargs: Any) -> None:
        super().__init__(*args, **kwargs)
        self.line = line
        self.value_lines: dict[Any, int] = {}


class _Loader(yaml.BaseLoader):
    """Keeps scalars as strings, like a schema-less YAML reader does."""


def _construct_map(loader: _Loader, node: yaml.MappingNode) -> YamlMapping:
    mapping = YamlMapping(line=node.start_mark.line + 1)
    for key_node, value_node in node.value:
        key = loader.construct_object(key_node, deep=True)
        mapping[key] = loader.construct_object(value_node, deep=True)
        mapping.value_lines[key] = value_node.start_mark.line + 1
    return mapping


_Loader.add_implicit_resolver(
    "tag:yaml.org,2002:null",
    re.compile(r"^(?:~|null|Null|NULL|)$"),
    ["~", "n", "N", ""],
)
_Loader.add_constructor("tag:yaml.org,2002:null", SafeConstructor.construct_yaml_null)
_Loader.add_constructor("tag:yaml.org,2002:map", _construct_map)


def load_yaml(text: str) -> Any:
    """Parse YAML text; mappings keep line numbers and scalars stay strings."""
    try:
        return yaml.load(text, Loader=_Loader)
    except yaml.MarkedYAMLError as exc:
        mark = exc.problem_mark
        raise ConfigurationError(str(exc.problem), mark.line + 1 if mark else None) from exc
    except yaml.YAMLError as exc:
        raise ConfigurationError(str(exc)) from exc


_DURATION_RE = re.compile(r"\s*(\d+)\s*(ms|s|min|h)\s*")
_DURATION_UNITS = {
    "ms": timedelta(milliseconds=1),
    "s": timedelta(seconds=1),
    "min": timedelta(minutes=1),
    "h": timedelta(hours=1),
}


def parse_duration(text: Any) -> timedelta:
    """Parse a duration such as ``500ms``, ``10s``, ``5min`` or ``1h``."""
    match = _DURATION_RE.fullmatch(str(text))
    if match is None:
        raise ValueError(
            f"invalid duration '{text}', use a number followed by ms, s, min or h"
        )
    amount, unit = match.groups()
    return int(amount) * _DURATION_UNITS[unit]


def _to_int(value: Any) -> int:
    if isinstance(value, bool):
        raise ValueError("integer expected")
    if isinstance(value, int):
        return value
    text = str(value).strip()
    lower = text.lower()
    if re.fullmatch(r"[+-]?0x[0-9a-f]+", lower):
        return int(lower, 16)
    if re.fullmatch(r"[+-]?0o[0-7]+", lower):
        return int(lower, 8)
    if re.fullmatch(r"[+-]?\d+", text):
        return int(text, 10)
    raise ValueError(f"integer expected, got '{text}'")


def _to_ushort(value: Any) -> int:
    number = _to_int(value)
    if not 0 <= number <= 0xFFFF:
        raise ValueError(f"value {number} out of range 0-65535")
    return number


def _to_char(value: Any) -> str:
    text = str(value)
    if len(text) != 1:
        raise ValueError(f"single character expected, got '{text}'")
    return text


def _enum_converter(enum_cls: type[Enum]) -> Callable[[Any], Any]:
    def convert(value: Any) -> Any:
        try:
            return enum_cls[str(value).strip().upper()]
        except KeyError:
            names = ", ".join(member.name.lower() for member in enum_cls)
            raise ValueError(f"unknown value '{value}', expected one of: {names}") from None

    return convert


def _line_of(node: Any) -> int | None:
    return getattr(node, "line", None)


def _value_line(parent: Any, name: str) -> int | None:
    lines = getattr(parent, "value_lines", None)
    return lines.get(name) if lines else None


def _is_scalar(value: Any) -> bool:
    return value is not None and not isinstance(value, (Mapping, list, tuple))


def _convert(value: Any, convert: Callable[[Any], T], line: int | None) -> T:
    try:
        return convert(value)
    except (ValueError, TypeError) as exc:
        raise ConfigurationError(f"bad value '{value}': {exc}", line) from exc


def read_required_value(
    parent: Any, name: str, convert: Callable[[Any], T] = str  # type: ignore[assignment]
) -> T:
    """Return ``parent[name]`` converted, raising if it is missing or not a scalar."""
    if not isinstance(parent, Mapping) or name not in parent:
        raise ConfigurationError(f"Missing required property '{name}'", _line_of(parent))
    value = parent[name]
    line = _value_line(parent, name)
    if not _is_scalar(value):
        raise ConfigurationError("string expected, list/null found", line)
    return _convert(value, convert, line)


def read_required_string(parent: Any, name: str) -> str:
    """Return a required, non-empty string property."""
    value = read_required_value(parent, name, str)
    if not value:
        raise ConfigurationError(f"{name} is an empty string", _line_of(parent))
    return value


def read_optional_value(
    parent: Any, name: str, convert: Callable[[Any], T] = str  # type: ignore[assignment]
) -> T | None:
    """Return ``parent[name]`` converted, or None when it is not present."""
    if not isinstance(parent, Mapping) or name not in parent:
        return None
    value = parent[name]
    if not _is_scalar(value):
        raise ConfigurationError(
            f"{name} must have a single value. List/null found", _line_of(parent)
        )
    return _convert(value, convert, _value_line(parent, name))


class NetworkType(Enum):
    RTU = "rtu"
    TCPIP = "tcpip"


class RtuRtsMode(Enum):
    NONE = "none"
    UP = "up"
    DOWN = "down"


class RtuSerialMode(Enum):
    UNSPECIFIED = "unspecified"
    RS232 = "rs232"
    RS485 = "rs485"


@dataclass
class ModbusWatchdogConfig:
    watch_period: timedelta = timedelta(seconds=10)
    device_path: str = ""


@dataclass
class ModbusNetworkConfig:
    """Settings of one modbus network, either RTU or TCP/IP."""

    MAX_RESPONSE_TIMEOUT: ClassVar[timedelta] = timedelta(milliseconds=999)

    name: str = ""
    network_type: NetworkType = NetworkType.TCPIP
    response_timeout: timedelta = timedelta(milliseconds=500)
    response_data_timeout: timedelta = timedelta(0)
    delay_before_command: timedelta | None = None
    delay_before_first_command: timedelta | None = None
    max_write_retry_count: int = 2
    max_read_retry_count: int = 1

    # RTU only
    device: str = ""
    baud: int = 0
    parity: str = ""
    data_bit: int = 0
    stop_bit: int = 0
    rtu_serial_mode: RtuSerialMode = RtuSerialMode.UNSPECIFIED
    rts_mode: RtuRtsMode = RtuRtsMode.NONE
    rts_delay_us: int = 0

    # TCP only
    address: str = ""
    port: int = 0

    watchdog: ModbusWatchdogConfig = field(default_factory=ModbusWatchdogConfig)

    @classmethod
    def from_yaml(cls, source: Any) -> ModbusNetworkConfig:
        """Build a network configuration from a parsed YAML mapping."""
        config = cls(name=read_required_string(source, "name"))

        for key in ("response_timeout", "response_data_timeout"):
            value = read_optional_value(source, key, parse_duration)
            if value is None:
                continue
            if value < timedelta(0) or value > cls.MAX_RESPONSE_TIMEOUT:
                raise ConfigurationError(
                    f"{key} value must be in range 0-999ms", _value_line(source, key)
                )
            setattr(config, key, value)

        delay = read_optional_value(source, "min_delay_before_poll", parse_duration)
        if delay is not None:
            log.warning(
                "'min_delay_before_poll' is deprecated and will be removed in future "
                "releases. Rename it to 'delay_before_command'"
            )
            config.delay_before_command = delay

        delay = read_optional_value(source, "delay_before_command", parse_duration)
        if delay is not None:
            config.delay_before_command = delay

        delay = read_optional_value(source, "delay_before_first_command", parse_duration)
        if delay is not None:
            config.delay_before_first_command = delay

        retries = read_optional_value(source, "write_retries", _to_ushort)
        if retries is not None:
            config.max_write_retry_count = retries
        retries = read_optional_value(source, "read_retries", _to_ushort)
        if retries is not None:
            config.max_read_retry_count = retries

        if "device" in source:
            config.network_type = NetworkType.RTU
            config.device = read_required_string(source, "device")
            config.baud = read_required_value(source, "baud", _to_int)
            config.parity = read_required_value(source, "parity", _to_char)
            config.data_bit = read_required_value(source, "data_bit", _to_int)
            config.stop_bit = read_required_value(source, "stop_bit", _to_int)
            serial_mode = read_optional_value(
                source, "rtu_serial_mode", _enum_converter(RtuSerialMode)
            )
            if serial_mode is not None:
                config.rtu_serial_mode = serial_mode
            rts_mode = read_optional_value(source, "rtu_rts_mode", _enum_converter(RtuRtsMode))
            if rts_mode is not None:
                config.rts_mode = rts_mode
            rts_delay = read_optional_value(source, "rtu_rts_delay_us", _to_int)
            if rts_delay is not None:
                config.rts_delay_us = rts_delay
            config.watchdog.device_path = config.device
        elif "address" in source:
            config.network_type = NetworkType.TCPIP
            config.address = read_required_string(source, "address")
            config.port = read_required_value(source, "port", _to_int)
        else:
            raise ConfigurationError(
                "Cannot determine modbus network type: missing 'device' or 'address'",
                _line_of(source),
            )

        if "watchdog" in source:
            period = read_optional_value(source["watchdog"], "watch_period", parse_duration)
            if period is not None:
                config.watchdog.watch_period = period

        return config


@dataclass
class MqttBrokerConfig:
    """Connection settings of the MQTT broker."""

    host: str = ""
    port: int = 1883
    keepalive: int = 60
    username: str = ""
    password: str = ""
    client_id: str = ""
    tls: bool = False
    cafile: str = ""

    @classmethod
    def from_yaml(cls, source: Any) -> MqttBrokerConfig:
        """Build broker settings from a parsed YAML mapping."""
        config = cls(host=read_required_string(source, "host"))
        if "tls" in source:
            config.tls = True
            config.port = 8883
            tls_node = source["tls"]
            cafile = read_optional_value(tls_node, "cafile", str)
            if cafile is not None:
                config.cafile = cafile
                if not os.path.exists(cafile) or os.path.isdir(cafile):
                    raise ConfigurationError(
                        f"CA file '{cafile}' is not a readable file",
                        _value_line(tls_node, "cafile"),
                    )
        port = read_optional_value(source, "port", _to_int)
        if port is not None:
            config.port = port
        keepalive = read_optional_value(source, "keepalive", _to_int)
        if keepalive is not None:
            config.keepalive = keepalive
        username = read_optional_value(source, "username", str)
        if username is not None:
            config.username = username
        secret = read_optional_value(source, "password", str)
        if secret is not None:
            config.password = secret
        return config

    def is_same_as(self, other: MqttBrokerConfig) -> bool:
        """Compare connection settings, ignoring the client id."""
        return (
            self.host == other.host
            and self.port == other.port
            and self.keepalive == other.keepalive
            and self.username == other.username
            and self.password == other.password
            and self.tls == other.tls
            and self.cafile == other.cafile
        )