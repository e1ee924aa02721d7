"""Dependency discovery over a received table graph.

Every table reachable from the graph gets a :class:`SchedulingRecord` in an
arena addressed by integer index. A record knows how often its table is used,
how many of its own pairs still wait for an undefined table (the readiness
deficit) and which other records use it, so the scheduler can release
dependents as soon as a table gets its definition.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional

from .table import Table, persistable_items

logger = logging.getLogger(__name__)

WRAPPER_INDEX = -1


@dataclass(eq=False)
class SchedulingRecord:
    index: int
    table: Table
    times_used: int = 1
    non_ready_pairs: int = 0
    # dependent index -> keys under which this table is a value of the dependent
    used_by: Dict[int, List[Any]] = field(default_factory=dict)
    definition: Optional[int] = None

    @property
    def defined(self) -> bool:
        return self.definition is not None


@dataclass
class DiscoveryResult:
    records: List[SchedulingRecord]
    index_of: Dict[Table, int]

    def record_for(self, table: Table) -> Optional[SchedulingRecord]:
        index = self.index_of.get(table)
        return None if index is None else self.records[index]


def discover(graph: Table, externals: Optional[Mapping[Table, str]] = None) -> DiscoveryResult:
    """Scan ``graph`` breadth first and build the scheduling records.

    External tables are treated as always defined and get no record. The graph
    itself is reached through a synthetic wrapper ``{1 = graph}`` so it owns a
    record like every other table; the wrapper is not recorded as a user.
    """
    externals = externals or {}
    records: List[SchedulingRecord] = []
    index_of: Dict[Table, int] = {}

    wrapper = Table()
    wrapper[1] = graph
    current_index = WRAPPER_INDEX
    current = wrapper
    while True:
        deficit = 0
        for key, value in persistable_items(current):
            depends = False
            for is_value, operand in ((False, key), (True, value)):
                if not isinstance(operand, Table) or operand in externals:
                    continue
                depends = True
                index = index_of.get(operand)
                if index is None:
                    index = len(records)
                    records.append(SchedulingRecord(index=index, table=operand))
                    index_of[operand] = index
                else:
                    records[index].times_used += 1
                if current_index == WRAPPER_INDEX:
                    continue
                keys = records[index].used_by.setdefault(current_index, [])
                if is_value and key is not value:
                    keys.append(key)
            if depends:
                deficit += 1
        if current_index != WRAPPER_INDEX:
            records[current_index].non_ready_pairs = deficit
        current_index += 1
        if current_index >= len(records):
            break
        current = records[current_index].table

    logger.debug("Discovered %d tables", len(records))
    return DiscoveryResult(records=records, index_of=index_of)
