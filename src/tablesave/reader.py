"""Loading generated scripts back into tables.

Only the subset of the language that :mod:`tablesave.generator` writes is
understood: ``local`` declarations, plain and indexed assignments, table
constructors, numeric expressions, quoted strings, ``true``/``false``/``nil``
and a final ``return``.
"""
from __future__ import annotations

import logging
import re
from typing import Any, Dict, List, Mapping, Optional, Tuple

from .errors import ScriptSyntaxError
from .literals import LUA_KEYWORDS, lua_divide, lua_power, parse_number_token
from .table import Table

logger = logging.getLogger(__name__)

_TOKEN_RE = re.compile(
    r"""
    (?P<space>\s+|--[^\n]*)
  | (?P<number>0[xX][0-9A-Fa-f]+|[0-9]+(?:\.[0-9]*)?(?:[eE][+-]?[0-9]+)?|\.[0-9]+(?:[eE][+-]?[0-9]+)?)
  | (?P<name>[A-Za-z_][A-Za-z0-9_]*)
  | (?P<string>"(?:[^"\\\n]|\\[\s\S])*"|'(?:[^'\\\n]|\\[\s\S])*')
  | (?P<op>[=.\[\]{}(),;^*/+-])
    """,
    re.VERBOSE,
)

_SIMPLE_ESCAPES = {
    "a": b"\a",
    "b": b"\b",
    "f": b"\f",
    "n": b"\n",
    "r": b"\r",
    "t": b"\t",
    "v": b"\v",
    "\\": b"\\",
    '"': b'"',
    "'": b"'",
    "\n": b"\n",
}

_EOF = ("eof", None)

Token = Tuple[str, Any]


def _unquote(literal: str) -> str:
    body = literal[1:-1]
    data = bytearray()
    position = 0
    while position < len(body):
        char = body[position]
        if char != "\\":
            data += char.encode("utf-8", "surrogateescape")
            position += 1
            continue
        escape = body[position + 1]
        digits = re.match(r"[0-9]{1,3}", body[position + 1:])
        if digits:
            code = int(digits.group())
            if code > 255:
                raise ScriptSyntaxError(f"escape sequence \\{code} too large")
            data.append(code)
            position += 1 + len(digits.group())
            continue
        data += _SIMPLE_ESCAPES.get(escape, escape.encode("utf-8", "surrogateescape"))
        position += 2
    return data.decode("utf-8", "surrogateescape")


def tokenize(text: str) -> List[Token]:
    tokens: List[Token] = []
    position = 0
    while position < len(text):
        match = _TOKEN_RE.match(text, position)
        if match is None:
            line = text.count("\n", 0, position) + 1
            raise ScriptSyntaxError(f"unexpected character {text[position]!r} on line {line}")
        kind = match.lastgroup
        value = match.group()
        position = match.end()
        if kind == "space":
            continue
        if kind == "number":
            tokens.append(("number", parse_number_token(value)))
        elif kind == "string":
            tokens.append(("string", _unquote(value)))
        elif kind == "name" and value in LUA_KEYWORDS:
            tokens.append(("keyword", value))
        else:
            tokens.append((kind, value))
    return tokens


class _ScriptParser:
    def __init__(self, text: str, environment: Optional[Mapping[str, Any]]) -> None:
        self.tokens = tokenize(text)
        self.position = 0
        self.environment: Mapping[str, Any] = environment or {}
        self.variables: Dict[str, Any] = {}

    # token helpers -------------------------------------------------------
    def peek(self) -> Token:
        if self.position < len(self.tokens):
            return self.tokens[self.position]
        return _EOF

    def take(self) -> Token:
        token = self.peek()
        self.position += 1
        return token

    def accept(self, kind: str, value: Any = None) -> bool:
        token = self.peek()
        if token[0] == kind and (value is None or token[1] == value):
            self.position += 1
            return True
        return False

    def expect(self, kind: str, value: Any = None) -> Any:
        token = self.take()
        if token[0] != kind or (value is not None and token[1] != value):
            wanted = value if value is not None else kind
            raise ScriptSyntaxError(f"expected {wanted!r}, got {token[1]!r}")
        return token[1]

    # statements ------------------------------------------------------------
    def run(self) -> Any:
        while True:
            if self.accept("op", ";"):
                continue
            if self.peek() == _EOF:
                return None
            if self.accept("keyword", "return"):
                values = []
                if self.peek() != _EOF and self.peek() != ("op", ";"):
                    values.append(self.expression())
                    while self.accept("op", ","):
                        values.append(self.expression())
                self.accept("op", ";")
                if self.peek() != _EOF:
                    raise ScriptSyntaxError(f"'return' must be the last statement, got {self.peek()[1]!r}")
                return values[0] if values else None
            if self.accept("keyword", "local"):
                name = self.expect("name")
                self.expect("op", "=")
                self.variables[name] = self.expression()
                continue
            self.assignment()

    def assignment(self) -> None:
        name = self.expect("name")
        target: Optional[Table] = None
        key: Any = name
        while self.peek() in (("op", "."), ("op", "[")):
            container = self.lookup(name) if target is None else target.get(key)
            if not isinstance(container, Table):
                raise ScriptSyntaxError(f"attempt to index a non-table value ({name})")
            target = container
            if self.take() == ("op", "."):
                key = self.expect("name")
            else:
                key = self.expression()
                self.expect("op", "]")
        self.expect("op", "=")
        value = self.expression()
        if target is None:
            self.variables[name] = value
            return
        try:
            target[key] = value
        except (KeyError, ValueError) as exc:
            raise ScriptSyntaxError(f"invalid table index: {exc}") from exc

    def lookup(self, name: str) -> Any:
        if name in self.variables:
            return self.variables[name]
        return self.environment.get(name)

    # expressions -----------------------------------------------------------
    def expression(self) -> Any:
        value = self.product()
        while self.peek() in (("op", "+"), ("op", "-")):
            _, op = self.take()
            right = self.product()
            left, right = self._numbers(value, right)
            value = left + right if op == "+" else left - right
        return value

    def product(self) -> Any:
        value = self.unary()
        while self.peek() in (("op", "*"), ("op", "/")):
            _, op = self.take()
            right = self.unary()
            left, right = self._numbers(value, right)
            value = left * right if op == "*" else lua_divide(left, right)
        return value

    def unary(self) -> Any:
        if self.accept("op", "-"):
            (operand,) = self._numbers(self.unary())
            return -operand
        return self.power()

    def power(self) -> Any:
        base = self.primary()
        if self.accept("op", "^"):
            left, right = self._numbers(base, self.unary())
            return lua_power(left, right)
        return base

    @staticmethod
    def _numbers(*values: Any) -> Tuple[float, ...]:
        for value in values:
            if isinstance(value, bool) or not isinstance(value, float):
                raise ScriptSyntaxError(f"attempt to perform arithmetic on {value!r}")
        return values

    def primary(self) -> Any:
        kind, value = self.take()
        if kind in ("number", "string"):
            return value
        if kind == "keyword":
            if value == "true":
                return True
            if value == "false":
                return False
            if value == "nil":
                return None
            raise ScriptSyntaxError(f"unexpected keyword {value!r}")
        if (kind, value) == ("op", "{"):
            return self.constructor()
        if kind == "name":
            return self.suffixes(self.lookup(value))
        if (kind, value) == ("op", "("):
            inner = self.expression()
            self.expect("op", ")")
            return self.suffixes(inner)
        raise ScriptSyntaxError(f"unexpected {value!r}" if kind != "eof" else "unexpected end of script")

    def suffixes(self, value: Any) -> Any:
        while self.peek() in (("op", "."), ("op", "[")):
            if not isinstance(value, Table):
                raise ScriptSyntaxError("attempt to index a non-table value")
            if self.take() == ("op", "."):
                key = self.expect("name")
            else:
                key = self.expression()
                self.expect("op", "]")
            value = value.get(key) if key is not None else None
        return value

    def constructor(self) -> Table:
        table = Table()
        index = 0
        while not self.accept("op", "}"):
            token = self.peek()
            if token == ("op", "["):
                self.take()
                key = self.expression()
                self.expect("op", "]")
                self.expect("op", "=")
                self._store(table, key, self.expression())
            elif token[0] == "name" and self.tokens[self.position + 1:self.position + 2] == [("op", "=")]:
                self.take()
                self.take()
                self._store(table, token[1], self.expression())
            else:
                index += 1
                self._store(table, index, self.expression())
            if not (self.accept("op", ",") or self.accept("op", ";")):
                self.expect("op", "}")
                break
        return table

    @staticmethod
    def _store(table: Table, key: Any, value: Any) -> None:
        try:
            table[key] = value
        except (KeyError, ValueError) as exc:
            raise ScriptSyntaxError(f"invalid table index: {exc}") from exc


def load_script(text: str, environment: Optional[Mapping[str, Any]] = None) -> Any:
    """Run a generated script and return its first returned value.

    Free names that are not assigned by the script are looked up in
    ``environment``; unknown names evaluate to ``None``.
    """
    parser = _ScriptParser(text, environment)
    result = parser.run()
    logger.debug("Loaded script with %d variables", len(parser.variables))
    return result
