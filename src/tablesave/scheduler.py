"""Ordering table definitions so every reference points backwards.

The scheduler turns a :class:`~tablesave.discovery.DiscoveryResult` into a flat
list of instructions:

- :class:`Definition` creates one table with all pairs that are ready,
- :class:`Assignment` fills in a pair that had to wait for a later definition
  (this is how cycles get closed),
- :class:`Return` hands the graph back.

Operands inside instructions are either a :class:`Literal` or the integer index
of a :class:`Definition`.
"""
from __future__ import annotations

import heapq
import logging
import math
from dataclasses import dataclass, field
from typing import Any, List, Mapping, Optional, Set, Tuple, Union

from .discovery import DiscoveryResult, SchedulingRecord
from .errors import SchedulingInvariantError
from .literals import is_identifier, natural_key, scalar_literal
from .table import Table, is_persistable

logger = logging.getLogger(__name__)

DEFAULT_MAX_INLINE_DEPTH = 7


@dataclass(frozen=True)
class Literal:
    text: str
    identifier: Optional[str] = None


Operand = Union[Literal, int]


@dataclass(eq=False)
class Definition:
    pairs: List[Tuple[Operand, Operand]] = field(default_factory=list)
    inline_level: float = math.inf
    # named definitions referenced from inside this one, while it may still be inlined
    referred: Optional[Set[int]] = None
    inlined: bool = False
    last_ref: Optional[int] = None


@dataclass(eq=False)
class Assignment:
    target: int
    key: Operand
    value: Operand


@dataclass(eq=False)
class Return:
    values: List[Operand] = field(default_factory=list)


Instruction = Union[Definition, Assignment, Return]


def _key_order(keys: List[Any]) -> List[Any]:
    numbers = sorted(k for k in keys if isinstance(k, float))
    strings = sorted((k for k in keys if isinstance(k, str)), key=natural_key)
    booleans = sorted(k for k in keys if isinstance(k, bool))
    others = [k for k in keys if not isinstance(k, (float, str, bool))]
    return numbers + strings + booleans + others


class DefinitionScheduler:
    """Produce the instruction list for one graph."""

    def __init__(
        self,
        discovery: DiscoveryResult,
        externals: Optional[Mapping[Table, str]] = None,
        max_inline_depth: int = DEFAULT_MAX_INLINE_DEPTH,
    ) -> None:
        self.discovery = discovery
        self.externals: Mapping[Table, str] = externals or {}
        self.max_inline_depth = max_inline_depth
        self.instructions: List[Instruction] = []
        self._heap: List[Tuple[int, int, int]] = []

    def _push(self, record: SchedulingRecord) -> None:
        heapq.heappush(self._heap, (record.non_ready_pairs, -record.times_used, record.index))

    def _pop(self) -> Optional[SchedulingRecord]:
        while self._heap:
            deficit, _, index = heapq.heappop(self._heap)
            record = self.discovery.records[index]
            if record.defined or deficit != record.non_ready_pairs:
                continue
            return record
        return None

    def _ready(self, value: Any) -> bool:
        record = self.discovery.record_for(value) if isinstance(value, Table) else None
        return record is None or record.defined

    def schedule(self, graph: Table) -> List[Instruction]:
        for record in self.discovery.records:
            self._push(record)
        while True:
            record = self._pop()
            if record is None:
                break
            self._define(record)
        undefined = [r.index for r in self.discovery.records if not r.defined]
        if undefined:
            raise SchedulingInvariantError(f"{len(undefined)} tables left undefined: {undefined[:10]}")
        index = len(self.instructions)
        self.instructions.append(Return([self._operand(graph, index)]))
        logger.debug("Scheduled %d instructions for %d tables", len(self.instructions), len(self.discovery.records))
        return self.instructions

    def _define(self, record: SchedulingRecord) -> None:
        table = record.table
        inlinable = record.times_used == 1 and record.non_ready_pairs == 0
        referred: Optional[Set[int]] = set() if inlinable else None
        definition = Definition(inline_level=1 if inlinable else math.inf, referred=referred)
        index = len(self.instructions)
        self.instructions.append(definition)

        ready = [
            key
            for key, value in table.items()
            if is_persistable(key) and is_persistable(value) and self._ready(key) and self._ready(value)
        ]
        for key in _key_order(ready):
            definition.pairs.append(
                (self._operand(key, index, referred), self._operand(table[key], index, referred))
            )
        record.definition = index

        for dependent_index, keys in record.used_by.items():
            dependent = self.discovery.records[dependent_index]
            newly_ready = 0
            candidates: List[Tuple[Any, Any, Any]] = []
            as_key_value = dependent.table.get(table)
            if as_key_value is not None and is_persistable(as_key_value):
                candidates.append((table, as_key_value, as_key_value))
            for key in keys:
                candidates.append((key, table, key))
            for key, value, pending in candidates:
                if not self._ready(pending):
                    continue
                if dependent.defined:
                    ref = len(self.instructions)
                    self.instructions.append(
                        Assignment(
                            target=dependent.definition,
                            key=self._operand(key, ref),
                            value=self._operand(value, ref),
                        )
                    )
                    self.instructions[dependent.definition].last_ref = ref
                else:
                    newly_ready += 1
            if newly_ready:
                dependent.non_ready_pairs -= newly_ready
                self._push(dependent)
        record.used_by = {}

    def _operand(self, value: Any, ref: int, referred: Optional[Set[int]] = None) -> Operand:
        if isinstance(value, Table):
            expression = self.externals.get(value)
            if expression is not None:
                return Literal(expression)
            record = self.discovery.record_for(value)
            if record is None or record.definition is None:
                raise SchedulingInvariantError(f"table {value!r} referenced before its definition")
            target_index = record.definition
            target = self.instructions[target_index]
            if target.inline_level < self.max_inline_depth:
                target.inlined = True
                for name in target.referred or ():
                    self.instructions[name].last_ref = ref
                    if referred is not None:
                        referred.add(name)
                if ref < len(self.instructions):
                    outer = self.instructions[ref]
                    if isinstance(outer, Definition):
                        outer.inline_level = max(outer.inline_level, 1 + target.inline_level)
            else:
                if referred is not None:
                    referred.add(target_index)
                target.last_ref = ref
            return target_index
        text = scalar_literal(value)
        identifier = value if isinstance(value, str) and is_identifier(value) else None
        return Literal(text, identifier)
