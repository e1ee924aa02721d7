import pytest

from tablesave.discovery import discover
from tablesave.errors import SchedulingInvariantError
from tablesave.scheduler import Assignment, Definition, DefinitionScheduler, Literal, Return
from tablesave.table import Table


def schedule(graph, externals=None, **kwargs):
    return DefinitionScheduler(discover(graph, externals), externals, **kwargs).schedule(graph)


def test_flat_graph_is_inlined_into_return():
    instructions = schedule(Table({"x": 1}))
    assert len(instructions) == 2
    definition, ret = instructions
    assert isinstance(definition, Definition)
    assert definition.inlined
    assert definition.pairs == [(Literal('"x"', "x"), Literal("1"))]
    assert isinstance(ret, Return)
    assert ret.values == [0]


def test_self_reference_becomes_assignment():
    graph = Table()
    graph["self"] = graph
    instructions = schedule(graph)
    assert [type(i) for i in instructions] == [Definition, Assignment, Return]
    definition, assignment, ret = instructions
    assert not definition.inlined
    assert definition.pairs == []
    assert assignment.target == 0
    assert assignment.key == Literal('"self"', "self")
    assert assignment.value == 0
    assert definition.last_ref == 2


def test_shared_table_is_defined_first_and_named():
    shared = Table({1: "one"})
    graph = Table({"a": shared, "b": shared})
    instructions = schedule(graph)
    first, second, ret = instructions
    assert not first.inlined
    assert first.pairs == [(Literal("1"), Literal('"one"', "one"))]
    assert second.inlined
    assert second.pairs == [(Literal('"a"', "a"), 0), (Literal('"b"', "b"), 0)]
    assert first.last_ref == 2


def test_keys_are_ordered_by_type_then_naturally():
    graph = Table()
    for key in ["b", "a10", "a2", 3, 1, True, False]:
        graph[key] = 0
    definition = schedule(graph)[0]
    assert [k.text for k, _ in definition.pairs] == ["1", "3", '"a2"', '"a10"', '"b"', "false", "true"]


def test_external_tables_render_as_expressions():
    env = Table()
    graph = Table({"env": env})
    definition = schedule(graph, {env: "_G"})[0]
    assert definition.pairs == [(Literal('"env"', "env"), Literal("_G"))]


def _chain(length):
    graph = Table()
    node = graph
    for _ in range(length - 1):
        child = Table()
        node["n"] = child
        node = child
    return graph


def test_inline_depth_is_bounded():
    instructions = schedule(_chain(10))
    named = [i for i in instructions if isinstance(i, Definition) and not i.inlined]
    assert len(named) == 1


def test_inline_depth_one_names_everything():
    instructions = schedule(_chain(10), max_inline_depth=1)
    named = [i for i in instructions if isinstance(i, Definition) and not i.inlined]
    assert len(named) == 10


def test_mutual_cycle_is_closed_with_assignment():
    a, b = Table(), Table()
    a["other"] = b
    b["other"] = a
    graph = Table({"a": a})
    instructions = schedule(graph)
    assignments = [i for i in instructions if isinstance(i, Assignment)]
    assert len(assignments) == 1
    assert isinstance(instructions[-1], Return)


def test_undefined_table_is_an_invariant_error(monkeypatch):
    graph = Table({"t": Table()})
    scheduler = DefinitionScheduler(discover(graph))
    # records that never reach the heap are never defined
    monkeypatch.setattr(scheduler, "_push", lambda record: None)
    with pytest.raises(SchedulingInvariantError):
        scheduler.schedule(graph)
