"""Converter that evaluates arithmetic expressions over register values."""

from __future__ import annotations

import math
import re
import struct
from collections.abc import Callable, Sequence
from dataclasses import dataclass

from .default_command_converter import ConversionError

MAX_REGISTERS = 10

_Node = Callable[[], float]


class ExpressionError(ConversionError):
    """Raised when an expression cannot be compiled or evaluated."""


# --- register helpers -------------------------------------------------------


def _reg(value: float) -> int:
    if not math.isfinite(value):
        raise ExpressionError("register value must be a finite number")
    return int(value) & 0xFFFF


def _swap(value: int) -> int:
    return ((value & 0xFF) << 8) | (value >> 8)


def _combine(high: float, low: float, swap_bytes: bool) -> bytes:
    high_reg, low_reg = _reg(high), _reg(low)
    if swap_bytes:
        high_reg, low_reg = _swap(high_reg), _swap(low_reg)
    return ((high_reg << 16) | low_reg).to_bytes(4, "big")


def _int32(high: float, low: float) -> float:
    return float(int.from_bytes(_combine(high, low, True), "big", signed=True))


def _uint32(high: float, low: float) -> float:
    return float(int.from_bytes(_combine(high, low, True), "big", signed=False))


def _flt32(high: float, low: float) -> float:
    return struct.unpack(">f", _combine(high, low, True))[0]


def _flt32be(high: float, low: float) -> float:
    return struct.unpack(">f", _combine(high, low, False))[0]


def _int16(value: float) -> float:
    raw = _reg(value)
    return float(raw - 0x10000 if raw & 0x8000 else raw)


# --- arithmetic with IEEE semantics ----------------------------------------


def _div(a: float, b: float) -> float:
    try:
        return a / b
    except ZeroDivisionError:
        if a == 0 or math.isnan(a):
            return math.nan
        return math.copysign(math.inf, a) * math.copysign(1.0, b)


def _mod(a: float, b: float) -> float:
    try:
        return math.fmod(a, b)
    except ValueError:
        return math.nan


def _pow(a: float, b: float) -> float:
    try:
        return math.pow(a, b)
    except OverflowError:
        return math.inf
    except ValueError:
        return math.inf if a == 0 else math.nan


def _safe(fn: Callable[..., float]) -> Callable[..., float]:
    def wrapped(*args: float) -> float:
        try:
            return float(fn(*args))
        except OverflowError:
            return math.inf
        except ValueError:
            return math.nan

    return wrapped


def _round(x: float) -> float:
    if not math.isfinite(x):
        return x
    return math.copysign(math.floor(abs(x) + 0.5), x)


def _roundn(x: float, digits: float) -> float:
    if not math.isfinite(x):
        return x
    scale = 10.0 ** int(digits)
    return _round(x * scale) / scale


def _sgn(x: float) -> float:
    if x > 0:
        return 1.0
    if x < 0:
        return -1.0
    return 0.0


def _truth(x: float) -> bool:
    return x != 0


@dataclass(frozen=True)
class _Function:
    min_args: int
    max_args: int | None
    fn: Callable[..., float]


_FUNCTIONS: dict[str, _Function] = {
    "int32": _Function(2, 2, _int32),
    "uint32": _Function(2, 2, _uint32),
    "flt32": _Function(2, 2, _flt32),
    "flt32be": _Function(2, 2, _flt32be),
    "int16": _Function(1, 1, _int16),
    "abs": _Function(1, 1, abs),
    "ceil": _Function(1, 1, _safe(math.ceil)),
    "floor": _Function(1, 1, _safe(math.floor)),
    "trunc": _Function(1, 1, _safe(math.trunc)),
    "round": _Function(1, 1, _round),
    "roundn": _Function(2, 2, _roundn),
    "frac": _Function(1, 1, lambda x: x - math.trunc(x) if math.isfinite(x) else math.nan),
    "sgn": _Function(1, 1, _sgn),
    "sqrt": _Function(1, 1, _safe(math.sqrt)),
    "exp": _Function(1, 1, _safe(math.exp)),
    "log": _Function(1, 1, _safe(math.log)),
    "log10": _Function(1, 1, _safe(math.log10)),
    "log2": _Function(1, 1, _safe(math.log2)),
    "sin": _Function(1, 1, _safe(math.sin)),
    "cos": _Function(1, 1, _safe(math.cos)),
    "tan": _Function(1, 1, _safe(math.tan)),
    "pow": _Function(2, 2, _pow),
    "hypot": _Function(2, 2, _safe(math.hypot)),
    "clamp": _Function(3, 3, lambda lo, x, hi: min(max(x, lo), hi)),
    "min": _Function(1, None, min),
    "max": _Function(1, None, max),
    "sum": _Function(1, None, lambda *a: math.fsum(a)),
    "avg": _Function(1, None, lambda *a: math.fsum(a) / len(a)),
    "not": _Function(1, 1, lambda x: float(not _truth(x))),
}

_CONSTANTS = {
    "pi": math.pi,
    "epsilon": 2.220446049250313e-16,
    "inf": math.inf,
    "true": 1.0,
    "false": 0.0,
}

_BINARY: dict[str, Callable[[float, float], float]] = {
    "+": lambda a, b: a + b,
    "-": lambda a, b: a - b,
    "*": lambda a, b: a * b,
    "/": _div,
    "%": _mod,
    "^": _pow,
    "<": lambda a, b: float(a < b),
    "<=": lambda a, b: float(a <= b),
    ">": lambda a, b: float(a > b),
    ">=": lambda a, b: float(a >= b),
    "=": lambda a, b: float(a == b),
    "==": lambda a, b: float(a == b),
    "!=": lambda a, b: float(a != b),
    "<>": lambda a, b: float(a != b),
    "and": lambda a, b: float(_truth(a) and _truth(b)),
    "&&": lambda a, b: float(_truth(a) and _truth(b)),
    "&": lambda a, b: float(_truth(a) and _truth(b)),
    "or": lambda a, b: float(_truth(a) or _truth(b)),
    "||": lambda a, b: float(_truth(a) or _truth(b)),
    "|": lambda a, b: float(_truth(a) or _truth(b)),
    "xor": lambda a, b: float(_truth(a) != _truth(b)),
}


# --- parsing ----------------------------------------------------------------

_TOKEN_RE = re.compile(
    r"""\s*(?:
        (?P<number>(?:\d+\.?\d*|\.\d+)(?:[eE][+-]?\d+)?)
      | (?P<name>[A-Za-z_][A-Za-z0-9_]*)
      | (?P<op><=|>=|==|!=|<>|&&|\|\||[-+*/%^(),<>=&|])
    )""",
    re.VERBOSE,
)


@dataclass(frozen=True)
class _Token:
    kind: str
    text: str
    position: int


def _tokenize(text: str) -> list[_Token]:
    tokens = []
    pos = 0
    while pos < len(text):
        if text[pos:].strip() == "":
            break
        match = _TOKEN_RE.match(text, pos)
        if match is None:
            stripped = len(text[pos:]) - len(text[pos:].lstrip())
            raise ExpressionError(
                f"unexpected character '{text[pos + stripped]}' at position {pos + stripped}"
            )
        kind = match.lastgroup or ""
        tokens.append(_Token(kind, match.group(kind), match.start(kind)))
        pos = match.end()
    return tokens


def _binary(op: Callable[[float, float], float], left: _Node, right: _Node) -> _Node:
    return lambda: op(left(), right())


class _Parser:
    def __init__(self, text: str, values: list[float]) -> None:
        self._tokens = _tokenize(text)
        self._pos = 0
        self._values = values
        self._variables = {f"r{i}": i for i in range(len(values))}

    def parse(self) -> _Node:
        if not self._tokens:
            raise ExpressionError("empty expression")
        node = self._or()
        token = self._peek()
        if token is not None:
            raise ExpressionError(f"unexpected '{token.text}' at position {token.position}")
        return node

    def _peek(self) -> _Token | None:
        return self._tokens[self._pos] if self._pos < len(self._tokens) else None

    def _accept(self, *texts: str) -> str | None:
        token = self._peek()
        if token is not None and token.kind != "number" and token.text.lower() in texts:
            self._pos += 1
            return token.text.lower()
        return None

    def _expect(self, text: str) -> None:
        if self._accept(text) is None:
            token = self._peek()
            found = "end of expression" if token is None else f"'{token.text}'"
            raise ExpressionError(f"expected '{text}', found {found}")

    def _left_assoc(self, operand: Callable[[], _Node], *ops: str) -> _Node:
        left = operand()
        while (op := self._accept(*ops)) is not None:
            left = _binary(_BINARY[op], left, operand())
        return left

    def _or(self) -> _Node:
        return self._left_assoc(self._and, "or", "||", "|", "xor")

    def _and(self) -> _Node:
        return self._left_assoc(self._comparison, "and", "&&", "&")

    def _comparison(self) -> _Node:
        left = self._additive()
        op = self._accept("<=", ">=", "==", "!=", "<>", "<", ">", "=")
        if op is None:
            return left
        return _binary(_BINARY[op], left, self._additive())

    def _additive(self) -> _Node:
        return self._left_assoc(self._term, "+", "-")

    def _term(self) -> _Node:
        return self._left_assoc(self._unary, "*", "/", "%")

    def _unary(self) -> _Node:
        if self._accept("-"):
            operand = self._unary()
            return lambda: -operand()
        if self._accept("+"):
            return self._unary()
        return self._power()

    def _power(self) -> _Node:
        base = self._primary()
        while self._accept("^"):
            base = _binary(_pow, base, self._unary())
        return base

    def _primary(self) -> _Node:
        token = self._peek()
        if token is None:
            raise ExpressionError("unexpected end of expression")
        self._pos += 1
        if token.kind == "number":
            number = float(token.text)
            return lambda: number
        if token.text == "(":
            node = self._or()
            self._expect(")")
            return node
        if token.kind != "name":
            raise ExpressionError(f"unexpected '{token.text}' at position {token.position}")

        name = token.text.lower()
        if self._accept("("):
            return self._call(name, token)
        if name in self._variables:
            index = self._variables[name]
            values = self._values
            return lambda: values[index]
        if name in _CONSTANTS:
            constant = _CONSTANTS[name]
            return lambda: constant
        raise ExpressionError(f"undefined symbol '{token.text}' at position {token.position}")

    def _call(self, name: str, token: _Token) -> _Node:
        function = _FUNCTIONS.get(name)
        if function is None:
            raise ExpressionError(f"undefined function '{token.text}' at position {token.position}")
        args: list[_Node] = []
        if not self._accept(")"):
            args.append(self._or())
            while self._accept(","):
                args.append(self._or())
            self._expect(")")
        if len(args) < function.min_args or (
            function.max_args is not None and len(args) > function.max_args
        ):
            raise ExpressionError(f"wrong number of arguments for '{token.text}'")
        fn = function.fn
        return lambda: float(fn(*(arg() for arg in args)))


# --- output formatting -------------------------------------------------------


def _format(value: float, precision: int) -> str:
    if precision == 0:
        if not math.isfinite(value):
            raise ExpressionError(f"cannot convert {value} to an integer")
        return str(int(value))
    if precision > 0:
        return f"{value:.{precision}f}"
    if math.isfinite(value) and value.is_integer():
        return str(int(value))
    return f"{value:f}"


class ExpressionConverter:
    """Evaluates an expression over registers R0..R9.

    Arguments: the expression, and optionally the number of decimal places
    of the result (0 gives an integer).
    """

    def __init__(self) -> None:
        self._values = [0.0] * MAX_REGISTERS
        self._expression: _Node | None = None
        self._precision = -1

    def set_args(self, args: Sequence[str]) -> None:
        if not args:
            raise ExpressionError("Exprtk expression argument is required")
        try:
            self._expression = _Parser(args[0], self._values).parse()
        except ExpressionError as exc:
            raise ExpressionError(f"Exprtk {exc}") from exc
        if len(args) == 2:
            try:
                self._precision = int(args[1])
            except ValueError:
                raise ExpressionError(
                    f"precision must be an integer, got '{args[1]}'"
                ) from None

    def to_mqtt(self, registers: Sequence[int]) -> str:
        """Evaluate the expression and return the formatted result."""
        if len(registers) > MAX_REGISTERS:
            raise ExpressionError(f"Maximum {MAX_REGISTERS} registers allowed")
        if self._expression is None:
            raise ExpressionError("Exprtk expression is not set")
        for index, value in enumerate(registers):
            self._values[index] = float(value)
        return _format(self._expression(), self._precision)


class ExprPlugin:
    """Plugin providing the ``evaluate`` converter."""

    name = "expr"

    def get_converter(self, name: str) -> ExpressionConverter | None:
        if name == "evaluate":
            return ExpressionConverter()
        return None