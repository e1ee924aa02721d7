"""Rendering scalars as source literals, and evaluating numeric literals back.

Numbers get the shortest text that evaluates to the very same double, picked
among integer, fixed-point, scientific and power-of-two fraction spellings.
Strings get whichever quote style needs fewer escapes.
"""
from __future__ import annotations

import math
import re
from decimal import Decimal
from fractions import Fraction
from typing import Any, Iterator, List, Optional, Tuple

from .errors import ScriptSyntaxError

LUA_KEYWORDS = frozenset(
    (
        "and break do else elseif end false for function if in local nil not or "
        "repeat return then true until while"
    ).split()
)

_IDENTIFIER_RE = re.compile(r"[A-Za-z_][A-Za-z0-9_]*")
_NUMBER_TOKEN_RE = re.compile(
    r"\s*(?:(0[xX][0-9A-Fa-f]+)|([0-9]+(?:\.[0-9]*)?(?:[eE][+-]?[0-9]+)?|\.[0-9]+(?:[eE][+-]?[0-9]+)?)|(\S))"
)
_DIGIT_RUN_RE = re.compile(r"([0-9]+)((?:\.[0-9]+)*)")

FRACTION_LIMIT = 1 << 20
MIN_POWER = -1074
MAX_POWER = 1023
MIN_DIVISOR_POWER = -1023
SHORT_DECIMAL_DIGITS = 9

_ESCAPES = {
    "\\": "\\\\",
    "\a": "\\a",
    "\b": "\\b",
    "\f": "\\f",
    "\n": "\\n",
    "\r": "\\r",
    "\t": "\\t",
    "\v": "\\v",
}


def is_identifier(text: str) -> bool:
    """True for strings usable as bare field names."""
    return _IDENTIFIER_RE.fullmatch(text) is not None and text not in LUA_KEYWORDS


# --------------------------------------------------------------------------- #
# Arithmetic with IEEE double semantics
# --------------------------------------------------------------------------- #

def lua_divide(a: float, b: float) -> float:
    if b == 0:
        if a == 0 or a != a:
            return math.nan
        negative = (a < 0) != (math.copysign(1.0, b) < 0)
        return -math.inf if negative else math.inf
    return a / b


def lua_power(base: float, exponent: float) -> float:
    if base == 0 and exponent < 0:
        odd = exponent.is_integer() and exponent % 2 == 1
        return -math.inf if odd and math.copysign(1.0, base) < 0 else math.inf
    try:
        return math.pow(base, exponent)
    except OverflowError:
        odd = exponent.is_integer() and exponent % 2 == 1
        return -math.inf if odd and base < 0 else math.inf
    except ValueError:
        return math.nan


def parse_number_token(token: str) -> float:
    if token[:2] in ("0x", "0X"):
        return float(int(token, 16))
    return float(token)


class _NumberExpression:
    """Recursive-descent evaluator for ``-``, ``^``, ``*``, ``/`` and parentheses."""

    def __init__(self, text: str) -> None:
        self.text = text
        self.tokens: List[Tuple[str, Any]] = []
        for match in _NUMBER_TOKEN_RE.finditer(text):
            hexadecimal, decimal, symbol = match.groups()
            if hexadecimal or decimal:
                self.tokens.append(("number", parse_number_token(hexadecimal or decimal)))
            elif symbol:
                self.tokens.append(("op", symbol))
        self.position = 0

    def _peek(self) -> Optional[Tuple[str, Any]]:
        if self.position < len(self.tokens):
            return self.tokens[self.position]
        return None

    def _take(self) -> Tuple[str, Any]:
        token = self._peek()
        if token is None:
            raise ScriptSyntaxError(f"unexpected end of numeric expression {self.text!r}")
        self.position += 1
        return token

    def evaluate(self) -> float:
        value = self._product()
        if self._peek() is not None:
            raise ScriptSyntaxError(f"unexpected {self._peek()[1]!r} in numeric expression {self.text!r}")
        return value

    def _product(self) -> float:
        value = self._unary()
        while self._peek() in (("op", "*"), ("op", "/")):
            _, op = self._take()
            right = self._unary()
            value = value * right if op == "*" else lua_divide(value, right)
        return value

    def _unary(self) -> float:
        if self._peek() == ("op", "-"):
            self._take()
            return -self._unary()
        return self._power()

    def _power(self) -> float:
        base = self._atom()
        if self._peek() == ("op", "^"):
            self._take()
            return lua_power(base, self._unary())
        return base

    def _atom(self) -> float:
        kind, value = self._take()
        if kind == "number":
            return value
        if value == "(":
            inner = self._product()
            if self._take() != ("op", ")"):
                raise ScriptSyntaxError(f"unbalanced parentheses in {self.text!r}")
            return inner
        raise ScriptSyntaxError(f"unexpected {value!r} in numeric expression {self.text!r}")


def evaluate_number(text: str) -> float:
    """Evaluate a numeric literal expression such as ``-3/5 * 2^-10``."""
    return _NumberExpression(text).evaluate()


def same_bits(a: float, b: float) -> bool:
    if a != a or b != b:
        return a != a and b != b
    return a == b and math.copysign(1.0, a) == math.copysign(1.0, b)


# --------------------------------------------------------------------------- #
# Numbers
# --------------------------------------------------------------------------- #

def _shortest_digits(value: float) -> Tuple[str, int]:
    """Return ``(digits, exponent)`` with ``value == int(digits) * 10**exponent``.

    ``digits`` is the shortest round-trip digit string without trailing zeros.
    """
    _, digit_tuple, exponent = Decimal(repr(value)).as_tuple()
    digits = "".join(str(d) for d in digit_tuple).lstrip("0")
    stripped = digits.rstrip("0")
    return stripped, exponent + len(digits) - len(stripped)


def _decimal_candidates(value: float) -> Iterator[str]:
    digits, exponent = _shortest_digits(value)
    if value < 2.0 ** 53 and value.is_integer():
        yield "%d" % int(value)
    if exponent >= 0:
        yield digits + "0" * exponent
    elif len(digits) > -exponent:
        yield digits[:exponent] + "." + digits[exponent:]
    else:
        yield "0." + "0" * (-exponent - len(digits)) + digits
    scientific_exponent = exponent + len(digits) - 1
    mantissa = digits[0] + ("." + digits[1:] if len(digits) > 1 else "")
    yield f"{mantissa}e{scientific_exponent}"
    if exponent != 0 and len(digits) > 1:
        yield f"{digits}e{exponent}"


def _is_short_decimal(value: float) -> bool:
    digits, exponent = _shortest_digits(value)
    return len(digits) <= SHORT_DECIMAL_DIGITS and -exponent <= SHORT_DECIMAL_DIGITS


def _render_fraction(numerator: int, denominator: int, power: int) -> Optional[str]:
    """Spell ``numerator / denominator * 2^power``; None when out of range."""
    if denominator == 1 and power == 0:
        return None
    if not (MIN_POWER <= power <= MAX_POWER):
        return None
    if numerator >= FRACTION_LIMIT or denominator >= FRACTION_LIMIT:
        return None
    divide = numerator != denominator and MIN_DIVISOR_POWER <= power < 0
    if numerator == 1 and denominator != 1 and power != 0:
        return f"2^{power} / {denominator}"
    text = ""
    if numerator != denominator:
        text = str(numerator)
        if denominator != 1:
            text += f"/{denominator}"
        if power != 0:
            text += " / " if divide else " * "
    if power != 0:
        text += f"2^{-power if divide else power}"
    return text or None


def _convergent(value: float) -> Optional[Tuple[int, int, int]]:
    """Find ``(N, D, k)`` with ``N/D * 2^k`` evaluating exactly to ``value``.

    The continued-fraction expansion of ``value / 2^k`` (which lies in [1, 2))
    is walked until a convergent reproduces ``value`` or the terms get too big.
    """
    _, binary_exponent = math.frexp(value)
    power = binary_exponent - 1
    scale = Fraction(2) ** power
    target = Fraction(value) / scale
    previous_n, numerator = 0, 1
    previous_d, denominator = 1, 0
    rest = target
    while True:
        term = rest.numerator // rest.denominator
        previous_n, numerator = numerator, term * numerator + previous_n
        previous_d, denominator = denominator, term * denominator + previous_d
        if numerator >= FRACTION_LIMIT or denominator >= FRACTION_LIMIT:
            return None
        try:
            approximation = math.ldexp(numerator / denominator, power)
        except OverflowError:
            approximation = math.inf
        if approximation == value:
            return numerator, denominator, power
        rest -= term
        if rest == 0:
            return None
        rest = 1 / rest


def _fraction_candidates(value: float) -> Iterator[str]:
    found = _convergent(value)
    if found is None:
        return
    numerator, denominator, power = found
    while numerator % 2 == 0:
        numerator //= 2
        power += 1
    while denominator % 2 == 0:
        denominator //= 2
        power -= 1
    shift = 0
    while (numerator << shift) < FRACTION_LIMIT:
        text = _render_fraction(numerator << shift, denominator, power - shift)
        if text is not None:
            yield text
        shift += 1
    shift = 1
    while (denominator << shift) < FRACTION_LIMIT:
        text = _render_fraction(numerator, denominator << shift, power + shift)
        if text is not None:
            yield text
        shift += 1


def number_literal(value: float) -> str:
    """Shortest literal that evaluates back to exactly ``value``."""
    value = float(value)
    if value != value:
        return "0/0"
    if value == 0:
        return "-0" if math.copysign(1.0, value) < 0 else "0"
    sign = "-" if value < 0 else ""
    magnitude = -value if value < 0 else value
    if magnitude == math.inf:
        return sign + "1/0"
    candidates = list(_decimal_candidates(magnitude))
    if not _is_short_decimal(magnitude):
        candidates.extend(_fraction_candidates(magnitude))
    best = None
    for candidate in candidates:
        if best is not None and len(candidate) >= len(best):
            continue
        try:
            if same_bits(evaluate_number(candidate), magnitude):
                best = candidate
        except (ScriptSyntaxError, ValueError):
            continue
    if best is None:
        best = repr(magnitude)
    return sign + best


# --------------------------------------------------------------------------- #
# Strings
# --------------------------------------------------------------------------- #

def quote_string(text: str, quote: str) -> str:
    out = [quote]
    last = len(text) - 1
    for i, char in enumerate(text):
        escaped = _ESCAPES.get(char)
        if escaped is not None:
            out.append(escaped)
        elif char == quote:
            out.append("\\" + char)
        elif ord(char) < 32 or ord(char) == 127:
            followed_by_digit = i < last and "0" <= text[i + 1] <= "9"
            out.append("\\%03d" % ord(char) if followed_by_digit else "\\%d" % ord(char))
        else:
            out.append(char)
    out.append(quote)
    return "".join(out)


def string_literal(text: str) -> str:
    single = quote_string(text, "'")
    double = quote_string(text, '"')
    return single if len(single) < len(double) else double


def scalar_literal(value: Any) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, str):
        return string_literal(value)
    if isinstance(value, (int, float)):
        return number_literal(float(value))
    raise TypeError(f"no literal form for {type(value).__name__}")


# --------------------------------------------------------------------------- #
# Key ordering
# --------------------------------------------------------------------------- #

def natural_key(text: str) -> Tuple[Tuple[Tuple[int, int, str, str], ...], str]:
    """Sort key comparing embedded digit runs by numeric value.

    ``"a2" < "a10"``; other characters sort before digits and by code point.
    """
    tokens: List[Tuple[int, int, str, str]] = []
    position = 0
    while position < len(text):
        match = _DIGIT_RUN_RE.match(text, position)
        if match is None:
            tokens.append((0, ord(text[position]), "", ""))
            position += 1
            continue
        whole = match.group(1).lstrip("0")
        tokens.append((1, len(whole), whole, match.group(2)))
        position = match.end()
    return tuple(tokens), text
