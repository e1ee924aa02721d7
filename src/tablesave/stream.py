"""Graph to symbol stream and back.

Both directions walk tables in the same order: a LIFO stack of pool positions,
seeded with the root container ``{graph, destination_name}``. For each table
the array part is written first, then the remaining key/value pairs, each part
closed by an end-of-list symbol. Because the encoder only ever refers back to
values it has already written, the decoder can rebuild everything in one pass
without looking ahead.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional, Sequence

from .errors import IntegrityError
from .table import Table, is_persistable
from .values import (
    GROUP_KNOWN,
    ROOT_POSITION,
    SYMBOL_END,
    SYMBOL_EXTERNAL,
    SYMBOL_STRING,
    SYMBOL_TABLE,
    KnownValuePool,
    SymbolReader,
    SymbolWriter,
    join_number,
)

logger = logging.getLogger(__name__)

_SPECIAL_STRING = SYMBOL_STRING - SYMBOL_STRING
_SPECIAL_EXTERNAL = SYMBOL_EXTERNAL - SYMBOL_STRING
_SPECIAL_END = SYMBOL_END - SYMBOL_STRING

_END = object()


def _is_array_key(key: Any, border: int) -> bool:
    return isinstance(key, float) and key.is_integer() and 0 < key <= border


class StreamEncoder:
    """Writes a table graph as symbols.

    ``externals`` maps tables owned by the host environment to the expression
    that names them there; such tables are sent by name and never scanned.
    """

    def __init__(self, externals: Optional[Mapping[Table, str]] = None) -> None:
        self.externals: Mapping[Table, str] = externals or {}

    def encode(self, graph: Table, destination_name: str) -> List[int]:
        if not isinstance(graph, Table):
            raise TypeError("graph must be a Table")
        if not isinstance(destination_name, str):
            raise TypeError("destination_name must be a string")
        root = Table()
        root[1] = graph
        root[2] = destination_name
        pool = KnownValuePool(root)
        writer = SymbolWriter()
        stack = [ROOT_POSITION]
        dropped = 0
        while stack:
            table = pool[stack.pop()]
            border = 0
            while True:
                value = table.get(border + 1)
                if value is None or not is_persistable(value):
                    break
                border += 1
                self._write_value(value, pool, writer, stack)
            writer.write(SYMBOL_END)
            for key, value in table.items():
                if _is_array_key(key, border):
                    continue
                if not is_persistable(key) or not is_persistable(value):
                    dropped += 1
                    continue
                self._write_value(key, pool, writer, stack)
                self._write_value(value, pool, writer, stack)
            writer.write(SYMBOL_END)
        if dropped:
            logger.debug("Dropped %d entries holding unsupported keys or values", dropped)
        logger.debug("Encoded %d pooled values into %d symbols", len(pool), len(writer.symbols))
        return writer.symbols

    def _write_value(self, value: Any, pool: KnownValuePool, writer: SymbolWriter, stack: List[int]) -> None:
        position = pool.position_of(value)
        if position is not None:
            writer.write_header(GROUP_KNOWN, position)
            return
        position = pool.append(value)
        if isinstance(value, Table):
            expression = self.externals.get(value)
            if expression is not None:
                writer.write(SYMBOL_EXTERNAL)
                writer.write_string(expression)
            else:
                writer.write(SYMBOL_TABLE)
                stack.append(position)
        elif isinstance(value, str):
            writer.write(SYMBOL_STRING)
            writer.write_string(value)
        else:
            writer.write_number(float(value))


@dataclass
class DecodedTransfer:
    """Contents of one transfer: the graph, its destination and external placeholders."""

    graph: Table
    destination_name: str
    externals: Dict[Table, str] = field(default_factory=dict)


class StreamDecoder:
    """Rebuilds the graph from a checksum-verified symbol sequence."""

    def decode(self, symbols: Sequence[int]) -> DecodedTransfer:
        root = Table()
        pool = KnownValuePool(root)
        reader = SymbolReader(symbols)
        externals: Dict[Table, str] = {}
        stack = [ROOT_POSITION]
        try:
            while stack:
                table = pool[stack.pop()]
                index = 0
                while True:
                    value = self._read_value(reader, pool, stack, externals)
                    if value is _END:
                        break
                    index += 1
                    table[index] = value
                while True:
                    key = self._read_value(reader, pool, stack, externals)
                    if key is _END:
                        break
                    value = self._read_value(reader, pool, stack, externals)
                    if value is _END:
                        raise IntegrityError("end of list where a value was expected")
                    table[key] = value
        except (KeyError, ValueError) as exc:
            raise IntegrityError(f"invalid key in stream: {exc}") from exc
        if not reader.exhausted:
            raise IntegrityError(f"{len(symbols) - reader.position} unexpected symbols after the last table")
        graph = root.get(1)
        destination_name = root.get(2)
        if not isinstance(graph, Table) or not isinstance(destination_name, str) or len(root) != 2:
            raise IntegrityError("root container must hold exactly a table and a destination name")
        logger.debug("Decoded %d pooled values from %d symbols", len(pool), len(symbols))
        return DecodedTransfer(graph=graph, destination_name=destination_name, externals=externals)

    def _read_value(self, reader: SymbolReader, pool: KnownValuePool, stack: List[int], externals: Dict[Table, str]) -> Any:
        group, number = reader.read_header()
        if group == GROUP_KNOWN:
            if number >= len(pool):
                raise IntegrityError(f"back-reference {number} beyond pool of {len(pool)} values")
            return pool[number]
        if group is None and number == _SPECIAL_END:
            return _END
        value: Any
        if group is not None:
            value = join_number(group, number, reader.read_exponent())
        elif number == _SPECIAL_STRING:
            value = reader.read_string()
        else:
            value = Table()
            if number == _SPECIAL_EXTERNAL:
                externals[value] = reader.read_string()
            else:
                stack.append(len(pool))
        pool.append(value)
        return value
