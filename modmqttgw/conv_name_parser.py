"""Parser for converter specifications such as ``std.int32(1, "x")``."""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from enum import Enum, auto

from .modbus_types import ModMqttError

_RE_CONV = re.compile(r"([a-z0-9]+)\.([a-z0-9]+)\s?\((.*)\)")


class ConverterNameParserError(ModMqttError):
    """Raised when a converter specification cannot be parsed."""


@dataclass
class ConverterSpecification:
    plugin: str
    converter: str
    args: list[str] = field(default_factory=list)


class _State(Enum):
    SCAN = auto()
    STRING = auto()
    ESCAPE = auto()


def parse_converter_spec(spec: str) -> ConverterSpecification:
    """Split ``plugin.converter(args)`` into its parts."""
    match = _RE_CONV.fullmatch(spec)
    if match is None:
        raise ConverterNameParserError(
            "Supply converter spec in form: plugin.converter(arg1, arg2, …)"
        )
    plugin, converter, raw_args = match.groups()
    args = parse_args(raw_args) if raw_args != "()" else []
    return ConverterSpecification(plugin, converter, args)


def parse_args(arg_spec: str) -> list[str]:
    """Split a comma separated argument list, honouring quotes and escapes."""
    args: list[str] = []
    states = [_State.SCAN]
    current = ""
    delimiter = ""

    for char in arg_spec:
        state = states[-1]
        if state is _State.ESCAPE:
            current += char
            states.pop()
        elif state is _State.STRING:
            if char == delimiter:
                states.pop()
            else:
                current += char
        elif char == "\\":
            states.append(_State.ESCAPE)
        elif char == ",":
            if not current:
                raise ConverterNameParserError(f"Argument {len(args) + 1} is empty")
            args.append(current)
            current = ""
        elif char in "\"'":
            states.append(_State.STRING)
            delimiter = char
        elif char != " ":
            current += char

    state = states[-1]
    if state is _State.STRING:
        raise ConverterNameParserError(
            f"Argument {len(args) + 1} is an unterminated string"
        )
    if state is _State.ESCAPE:
        raise ConverterNameParserError(
            f"Argument {len(args) + 1} has an invalid escape sequence"
        )
    if current:
        args.append(current)
    return args