"""Symbol-level encoding of single values.

Every value travels as a run of symbols from a 94-symbol alphabet (0..93).
A value is either a back-reference into the :class:`KnownValuePool` or a new
number, string or table, which both sides then append to their pools in the
same order. Keeping the two pools in lock-step is what makes back-references
meaningful, so every new value must go through :meth:`KnownValuePool.append`.

Header symbols below 90 carry a group (``symbol // 30``) and a magnitude:

- group 0: negative number, group 2: positive number, magnitude ``m`` is the odd
  mantissa ``2m + 1`` and a binary exponent follows;
- group 1: back-reference, magnitude is the pool position.

Symbols 90..93 introduce a string, an external reference, a new table, and mark
the end of a list respectively.
"""
from __future__ import annotations

import math
from typing import Any, Dict, List, Optional, Sequence, Tuple

from .errors import IntegrityError
from .table import Table

ALPHABET_SIZE = 94

GROUP_NEGATIVE = 0
GROUP_KNOWN = 1
GROUP_POSITIVE = 2
GROUP_SPAN = 30
DIRECT_LIMIT = 22
MAX_EXTENSION_DIGITS = GROUP_SPAN - DIRECT_LIMIT

SYMBOL_STRING = 90
SYMBOL_EXTERNAL = 91
SYMBOL_TABLE = 92
SYMBOL_END = 93

STRING_TERMINATOR = 5

EXPONENT_MIN_DIRECT = -17
EXPONENT_MAX_DIRECT = 53
EXPONENT_WIDE_BASE = 83

ROOT_POSITION = 7
MANTISSA_BITS = 53

# newline, carriage return and tab get their own symbols, printable ASCII maps 1:1
_BYTE_TO_SYMBOL: Dict[int, int] = {10: 2, 13: 3, 9: 4}
_BYTE_TO_SYMBOL.update({byte: byte - 26 for byte in range(32, 120)})
_SPECIAL_TO_BYTE = {2: 10, 3: 13, 4: 9}


def _pool_key(value: Any) -> Any:
    if isinstance(value, bool):
        return ("bool", value)
    if isinstance(value, (int, float)):
        return ("number", float(value))
    if isinstance(value, str):
        return ("string", value)
    return value


class KnownValuePool:
    """Append-only registry of values already seen in one transfer.

    Positions 0..7 are fixed: NaN, +0, -0, +inf, -inf, False, True and the root
    container. Numbers and strings are found again by value, tables by identity.
    """

    def __init__(self, root: Table) -> None:
        self._values: List[Any] = [math.nan, 0.0, -0.0, math.inf, -math.inf, False, True, root]
        self._positions: Dict[Any, int] = {}
        for position in range(3, len(self._values)):
            self._positions[_pool_key(self._values[position])] = position

    def __len__(self) -> int:
        return len(self._values)

    def __getitem__(self, position: int) -> Any:
        return self._values[position]

    def position_of(self, value: Any) -> Optional[int]:
        if isinstance(value, (int, float)) and not isinstance(value, bool):
            number = float(value)
            if number != number:
                return 0
            if number == 0:
                return 2 if math.copysign(1.0, number) < 0 else 1
        return self._positions.get(_pool_key(value))

    def append(self, value: Any) -> int:
        position = len(self._values)
        self._values.append(value)
        self._positions[_pool_key(value)] = position
        return position


def split_number(value: float) -> Tuple[int, int, int]:
    """Split a finite non-zero float into ``(group, magnitude, exponent)``.

    ``value == sign * (2 * magnitude + 1) * 2 ** exponent`` holds exactly.
    """
    group = GROUP_NEGATIVE if value < 0 else GROUP_POSITIVE
    fraction, exponent = math.frexp(abs(value))
    mantissa = int(fraction * (1 << MANTISSA_BITS))
    exponent -= MANTISSA_BITS
    zeros = (mantissa & -mantissa).bit_length() - 1
    mantissa >>= zeros
    exponent += zeros
    return group, (mantissa - 1) // 2, exponent


def join_number(group: int, magnitude: int, exponent: int) -> float:
    mantissa = 2 * magnitude + 1
    if mantissa >= 1 << MANTISSA_BITS:
        raise IntegrityError(f"mantissa {mantissa} does not fit a double")
    try:
        value = math.ldexp(float(mantissa), exponent)
    except OverflowError as exc:
        raise IntegrityError(f"number 2^{exponent} out of range") from exc
    return -value if group == GROUP_NEGATIVE else value


class SymbolWriter:
    """Accumulates symbols for one transfer."""

    def __init__(self) -> None:
        self.symbols: List[int] = []

    def write(self, symbol: int) -> None:
        self.symbols.append(symbol)

    def write_header(self, group: int, magnitude: int) -> None:
        base = group * GROUP_SPAN
        if magnitude < DIRECT_LIMIT:
            self.write(base + magnitude)
            return
        rest = magnitude - DIRECT_LIMIT
        digits: List[int] = []
        while True:
            digit = rest % ALPHABET_SIZE
            digits.append(digit)
            rest = (rest - digit) // ALPHABET_SIZE - 1
            if rest < 0:
                break
        if len(digits) > MAX_EXTENSION_DIGITS:
            raise ValueError(f"magnitude {magnitude} too large to encode")
        self.write(base + DIRECT_LIMIT - 1 + len(digits))
        for digit in reversed(digits):
            self.write(digit)

    def write_exponent(self, exponent: int) -> None:
        if EXPONENT_MIN_DIRECT <= exponent <= EXPONENT_MAX_DIRECT:
            self.write(exponent - EXPONENT_MIN_DIRECT)
        else:
            high, low = divmod(exponent, ALPHABET_SIZE)
            self.write(EXPONENT_WIDE_BASE + high)
            self.write(low)

    def write_number(self, value: float) -> None:
        group, magnitude, exponent = split_number(value)
        self.write_header(group, magnitude)
        self.write_exponent(exponent)

    def write_string(self, text: str) -> None:
        for byte in text.encode("utf-8", "surrogateescape"):
            symbol = _BYTE_TO_SYMBOL.get(byte)
            if symbol is None:
                high, symbol = divmod((byte - 120) % 256, ALPHABET_SIZE)
                self.write(high)
            self.write(symbol)
        self.write(STRING_TERMINATOR)


class SymbolReader:
    """Reads values back from a validated symbol sequence."""

    def __init__(self, symbols: Sequence[int]) -> None:
        self._symbols = symbols
        self.position = 0

    @property
    def exhausted(self) -> bool:
        return self.position >= len(self._symbols)

    def read(self) -> int:
        if self.position >= len(self._symbols):
            raise IntegrityError("symbol stream ended in the middle of a value")
        symbol = self._symbols[self.position]
        self.position += 1
        return symbol

    def read_header(self) -> Tuple[Optional[int], int]:
        """Return ``(group, magnitude)``, or ``(None, n)`` for special symbol ``90 + n``."""
        symbol = self.read()
        if symbol >= SYMBOL_STRING:
            return None, symbol - SYMBOL_STRING
        group, small = divmod(symbol, GROUP_SPAN)
        if small >= DIRECT_LIMIT:
            value = 0
            for _ in range(small - DIRECT_LIMIT + 1):
                value = value * ALPHABET_SIZE + self.read() + 1
            small = value + DIRECT_LIMIT - 1
        return group, small

    def read_exponent(self) -> int:
        symbol = self.read()
        if symbol <= EXPONENT_MAX_DIRECT - EXPONENT_MIN_DIRECT:
            return symbol + EXPONENT_MIN_DIRECT
        return (symbol - EXPONENT_WIDE_BASE) * ALPHABET_SIZE + self.read()

    def read_string(self) -> str:
        data = bytearray()
        while True:
            symbol = self.read()
            if symbol < 2:
                byte = (symbol * ALPHABET_SIZE + self.read() + 120) % 256
            elif symbol > STRING_TERMINATOR:
                byte = symbol + 26
            elif symbol == STRING_TERMINATOR:
                break
            else:
                byte = _SPECIAL_TO_BYTE[symbol]
            data.append(byte)
        return data.decode("utf-8", "surrogateescape")
