import math

import pytest

from tablesave.errors import ScriptSyntaxError
from tablesave.generator import render_graph
from tablesave.reader import load_script, tokenize
from tablesave.table import Table, isomorphic


def test_constructor_fields():
    t = load_script('return {\n\tx = 1,\n\t[2] = "a",\n\t["k k"] = true;\n\t"pos",\n}\n')
    assert t["x"] == 1.0
    assert t[2] == "a"
    assert t["k k"] is True
    assert t[1] == "pos"


def test_locals_and_assignments():
    t = load_script("local a = {}\na.self = a\na[1] = false\nreturn a\n")
    assert t["self"] is t
    assert t[1] is False


def test_overflow_slot_table():
    t = load_script("local z = {{}}\nz[2] = {\n\tx = z[1]\n}\nreturn z[2]\n")
    assert isinstance(t["x"], Table)


def test_name_reuse_reads_previous_value_first():
    t = load_script("local a = {n = 1}\na = {prev = a}\nreturn a\n")
    assert t["prev"]["n"] == 1.0


def test_string_escapes():
    assert load_script(r'return "a\n\0651\\"') == "a\nA1\\"
    assert load_script(r"return 'it\'s'") == "it's"
    assert load_script(r'return "\195\169"') == "é"
    assert load_script(r'return "\200"') == "\udcc8"
    assert load_script('return "é"') == "é"


def test_numeric_expressions():
    assert load_script("return -2^2") == -4.0
    assert load_script("return 1/3") == 1 / 3
    assert load_script("return 3/4 * 2^-10") == 3 / 4 * 2.0 ** -10
    assert math.isnan(load_script("return 0/0"))
    assert math.copysign(1.0, load_script("return -0")) == -1.0


def test_return_without_values():
    assert load_script("return") is None
    assert load_script("") is None


def test_environment_names():
    env = Table()
    t = load_script("return {\n\tg = _G\n}\n", {"_G": env})
    assert t["g"] is env
    assert load_script("return {\n\tg = missing\n}\n").get("g") is None


def test_comments_and_crlf_are_skipped():
    t = load_script("-- saved\r\nreturn {\r\n\tx = 1\r\n}\r\n")
    assert t["x"] == 1.0


@pytest.mark.parametrize(
    "text",
    [
        "return {",
        "x = = 1",
        "return 1 2",
        "return 'abc",
        "return {[nil] = 1}",
        "local 1 = 2",
        "return -'a'",
        "a.b = 1",
        'return "\\999"',
    ],
)
def test_malformed_scripts(text):
    with pytest.raises(ScriptSyntaxError):
        load_script(text)


def test_tokenize_keywords_and_names():
    assert tokenize("local a = true") == [
        ("keyword", "local"),
        ("name", "a"),
        ("op", "="),
        ("keyword", "true"),
    ]


@pytest.mark.parametrize(
    "doc",
    [
        {},
        {"list": [1, 2.5, -3, "four", True]},
        {"nested": {"deeper": {"deepest": {"x": "\x00\x01\x7f"}}}},
        {"numbers": [0.1, 1e300, -1e-300, 2 ** 60, 1 / 3]},
        {"quotes": ["'", '"', "'\"", "\\", "\r\n\t"]},
        {"keywords": {"end": 1, "nil": 2, "_ok": 3, "with space": 4}},
    ],
)
def test_generated_scripts_load_back(doc):
    graph = Table.from_python(doc)
    assert isomorphic(graph, load_script(render_graph(graph)))


def test_cyclic_graph_loads_back():
    a, b, c = Table(), Table(), Table()
    a["b"] = b
    b["c"] = c
    c["a"] = a
    a[c] = "table key"
    b[b] = b
    assert isomorphic(a, load_script(render_graph(a)))
