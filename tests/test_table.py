import math

import pytest

from tablesave.table import Table, is_persistable, isomorphic, scalars_equal


def test_numeric_keys_are_normalized():
    t = Table()
    t[2] = "int"
    assert t[2.0] == "int"
    t[2.0] = "float"
    assert len(t) == 1
    assert t.keys() == [2.0]

    t[-0.0] = "zero"
    assert t[0] == "zero"
    assert len(t) == 2


def test_bool_and_string_keys_do_not_collide_with_numbers():
    t = Table()
    t[1] = "one"
    t[True] = "yes"
    t["1"] = "text"
    assert len(t) == 3
    assert t[1] == "one"
    assert t[True] == "yes"
    assert t["1"] == "text"


def test_invalid_keys_raise():
    t = Table()
    with pytest.raises(KeyError):
        t[None] = 1
    with pytest.raises(ValueError):
        t[math.nan] = 1
    with pytest.raises(ValueError):
        t[10 ** 400] = 1
    assert None not in t
    assert math.nan not in t


def test_assigning_none_removes_entry():
    t = Table({"a": 1, "b": 2})
    t["a"] = None
    assert "a" not in t
    assert t.get("a") is None
    with pytest.raises(KeyError):
        del t["a"]


def test_border_and_append():
    t = Table()
    t.append("x")
    t.append("y")
    t[4] = "gap"
    assert t.border() == 2
    t.append("z")
    assert t.border() == 4
    assert t[3] == "z"


def test_tables_hash_by_identity():
    a, b = Table(), Table()
    t = Table()
    t[a] = 1
    t[b] = 2
    assert t[a] == 1 and t[b] == 2
    assert a != b


def test_from_python_preserves_sharing_and_cycles():
    shared = [1, 2, 3]
    doc = {"a": shared, "b": shared}
    doc["self"] = doc
    t = Table.from_python(doc)

    assert t["a"] is t["b"]
    assert t["self"] is t
    assert t["a"][1] == 1.0
    assert t["a"].border() == 3


def test_from_python_rejects_scalars():
    with pytest.raises(TypeError):
        Table.from_python(42)


@pytest.mark.parametrize(
    "value, expected",
    [
        (1, True),
        (1.5, True),
        ("s", True),
        (False, True),
        (Table(), True),
        (10 ** 400, False),
        (object(), False),
        ([1], False),
    ],
)
def test_is_persistable(value, expected):
    assert is_persistable(value) is expected


def test_scalars_equal_edge_cases():
    assert scalars_equal(math.nan, math.nan)
    assert not scalars_equal(0.0, -0.0)
    assert not scalars_equal(True, 1)
    assert scalars_equal(2, 2.0)
    assert not scalars_equal("2", 2)


def test_isomorphic_matches_shape_sharing_and_cycles():
    a = Table.from_python({"x": [1, 2], "y": {"z": "w"}})
    b = Table.from_python({"y": {"z": "w"}, "x": [1, 2]})
    assert isomorphic(a, b)

    cyclic_a = Table()
    cyclic_a["self"] = cyclic_a
    cyclic_b = Table()
    cyclic_b["self"] = Table()
    assert not isomorphic(cyclic_a, cyclic_b)


def test_isomorphic_detects_lost_sharing():
    inner = Table()
    shared = Table({"p": inner, "q": inner})
    split = Table({"p": Table(), "q": Table()})
    assert not isomorphic(shared, split)


def test_isomorphic_pairs_table_keys():
    ka, kb = Table({"k": 1}), Table({"k": 1})
    a = Table()
    a[ka] = "v"
    a["ref"] = ka
    b = Table()
    b[kb] = "v"
    b["ref"] = kb
    assert isomorphic(a, b)


def test_isomorphic_ignores_dropped_entries():
    a = Table({"x": 1, "f": object()})
    b = Table({"x": 1})
    assert isomorphic(a, b)


def test_isomorphic_ignores_table_key_insertion_order():
    a = Table()
    a[Table({1: 1})] = "one"
    a[Table({1: 2})] = "two"
    b = Table()
    b[Table({1: 2})] = "two"
    b[Table({1: 1})] = "one"
    assert isomorphic(a, b)


def test_isomorphic_backtracks_on_look_alike_keys():
    # both keys look the same at the top level and differ one table further down
    a = Table()
    a[Table({"n": Table({"v": 1})})] = "x"
    a[Table({"n": Table({"v": 2})})] = "x"
    b = Table()
    b[Table({"n": Table({"v": 2})})] = "x"
    b[Table({"n": Table({"v": 1})})] = "x"
    assert isomorphic(a, b)

    c = Table()
    c[Table({"n": Table({"v": 2})})] = "x"
    c[Table({"n": Table({"v": 3})})] = "x"
    assert not isomorphic(a, c)


def test_isomorphic_table_keys_must_agree_with_sharing():
    shared = Table({"s": 1})
    a = Table({"ref": shared})
    a[shared] = "k"
    a[Table({"s": 1})] = "k"
    b = Table({"ref": Table({"s": 1})})
    b[Table({"s": 1})] = "k"
    b[Table({"s": 1})] = "k"
    assert not isomorphic(a, b)
