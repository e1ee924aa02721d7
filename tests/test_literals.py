import math
import random
import struct

import pytest

from tablesave.errors import ScriptSyntaxError
from tablesave.literals import (
    evaluate_number,
    is_identifier,
    natural_key,
    number_literal,
    quote_string,
    same_bits,
    scalar_literal,
    string_literal,
)
from tablesave.reader import load_script


@pytest.mark.parametrize(
    "value, text",
    [
        (0.0, "0"),
        (-0.0, "-0"),
        (math.nan, "0/0"),
        (math.inf, "1/0"),
        (-math.inf, "-1/0"),
        (1.0, "1"),
        (-7.0, "-7"),
        (123456.0, "123456"),
        (0.5, "0.5"),
        (0.1, "0.1"),
        (-2.25, "-2.25"),
        (1e16, "1e16"),
        (1e20, "1e20"),
        (1.5e-7, "15e-8"),
        (5e-324, "5e-324"),
        (1 / 3, "1/3"),
        (-2 / 3, "-2/3"),
        (2.0 ** 100, "2^100"),
    ],
)
def test_number_literal(value, text):
    assert number_literal(value) == text


@pytest.mark.parametrize(
    "value",
    [
        math.pi,
        1 / 7,
        123.456,
        1e-300,
        1.7976931348623157e308,
        2.2250738585072014e-308,
        2 / 3 * 2.0 ** -1000,
        5 / 7 * 2.0 ** 900,
        9007199254740993.0,
        -0.3,
        4.9406564584124654e-322,
    ],
)
def test_number_literal_round_trips(value):
    text = number_literal(value)
    assert same_bits(evaluate_number(text), value)
    assert len(text) <= len(repr(value))


@pytest.mark.parametrize(
    "text, value",
    [
        ("2^-2", 0.25),
        ("-2^2", -4.0),
        ("2^3^2", 512.0),
        ("3/4 * 2^-10", 3 / 4 * 2.0 ** -10),
        ("2^-5 / 3", 2.0 ** -5 / 3),
        ("(1/0)", math.inf),
        ("-1/0", -math.inf),
        ("1/-0", -math.inf),
        ("0x10", 16.0),
        ("1.5e3", 1500.0),
    ],
)
def test_evaluate_number(text, value):
    assert evaluate_number(text) == value


def test_evaluate_number_special_values():
    assert math.isnan(evaluate_number("0/0"))
    assert same_bits(evaluate_number("-0"), -0.0)
    assert evaluate_number("2^2000") == math.inf


@pytest.mark.parametrize("text", ["2^", "1 +", "(1", "abc", ""])
def test_evaluate_number_rejects_garbage(text):
    with pytest.raises(ScriptSyntaxError):
        evaluate_number(text)


@pytest.mark.parametrize(
    "text, quote, expected",
    [
        ("abc", '"', '"abc"'),
        ('a"b', '"', '"a\\"b"'),
        ("a'b", '"', '"a\'b"'),
        ("\\", '"', '"\\\\"'),
        ("\n\t", '"', '"\\n\\t"'),
        ("\x01", '"', '"\\1"'),
        ("\x012", '"', '"\\0012"'),
        ("\x7f", "'", "'\\127'"),
        ("\x1b[", "'", "'\\27['"),
        ("é", '"', '"é"'),
    ],
)
def test_quote_string(text, quote, expected):
    assert quote_string(text, quote) == expected


def test_string_literal_prefers_fewer_escapes():
    assert string_literal("x") == '"x"'
    assert string_literal('say "hi"') == "'say \"hi\"'"
    assert string_literal("it's") == '"it\'s"'


def test_scalar_literal():
    assert scalar_literal(True) == "true"
    assert scalar_literal(False) == "false"
    assert scalar_literal(3) == "3"
    assert scalar_literal("k") == '"k"'
    with pytest.raises(TypeError):
        scalar_literal(None)


@pytest.mark.parametrize(
    "text, expected",
    [("foo_1", True), ("_", True), ("end", False), ("1a", False), ("a-b", False), ("", False), ("é", False)],
)
def test_is_identifier(text, expected):
    assert is_identifier(text) is expected


def test_natural_key_orders_digit_runs_numerically():
    words = ["a10", "b", "a2", "a", "a1", "a1.5", "a01"]
    assert sorted(words, key=natural_key) == ["a", "a01", "a1", "a1.5", "a2", "a10", "b"]
    assert sorted(["x-", "x1"], key=natural_key) == ["x-", "x1"]


# quotes, escapes, digits after control characters and invalid UTF-8 bytes
STRING_BYTES = b"ab09 '\"\\\n\r\t\x00\x01\x1f\x7f\x80\xc3\xa9\xff"


@pytest.mark.parametrize("seed", range(10))
def test_string_literal_is_never_longer_than_either_quote(seed):
    rng = random.Random(seed)
    for _ in range(50):
        data = bytes(rng.choice(STRING_BYTES) for _ in range(rng.randrange(16)))
        text = data.decode("utf-8", "surrogateescape")
        literal = string_literal(text)
        assert len(literal) <= len(quote_string(text, "'"))
        assert len(literal) <= len(quote_string(text, '"'))
        assert load_script("return " + literal) == text


@pytest.mark.parametrize("seed", range(10))
def test_number_literal_keeps_the_bits_of_any_double(seed):
    rng = random.Random(seed)
    for _ in range(100):
        value = struct.unpack("<d", rng.getrandbits(64).to_bytes(8, "little"))[0]
        assert same_bits(evaluate_number(number_literal(value)), value)
