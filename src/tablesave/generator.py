"""Rendering scheduled instructions as script text."""
from __future__ import annotations

import logging
from typing import Dict, List, Mapping, Optional, Sequence

from .discovery import discover
from .names import VariableNamePool
from .scheduler import (
    DEFAULT_MAX_INLINE_DEPTH,
    Assignment,
    Definition,
    DefinitionScheduler,
    Instruction,
    Literal,
    Operand,
    Return,
)
from .table import Table

logger = logging.getLogger(__name__)


class SourceGenerator:
    """Writes one instruction list as text.

    A hoisted definition keeps its variable name until the instruction holding
    its last reference; the name is recycled right before that instruction is
    written, which is safe because the right-hand side is built before the
    assignment happens.
    """

    def __init__(self, instructions: Sequence[Instruction], newline: str = "\n", indent: str = "\t") -> None:
        self.instructions = instructions
        self.newline = newline
        self.indent = indent
        self._names: Dict[int, str] = {}
        self._parts: List[str] = []

    def render(self) -> str:
        pool = VariableNamePool()
        terminating: Dict[int, List[int]] = {}
        for index, instruction in enumerate(self.instructions):
            for finished in terminating.pop(index, ()):
                pool.release(self._names[finished])
            if isinstance(instruction, Definition):
                if instruction.inlined:
                    continue
                if instruction.last_ref is not None:
                    terminating.setdefault(instruction.last_ref, []).append(index)
                name, prefix, suffix = pool.acquire()
                self._names[index] = name
                self._write(prefix)
                self._write_constructor(instruction, "")
                self._write(suffix)
            elif isinstance(instruction, Assignment):
                self._write(self._names[instruction.target])
                key = instruction.key
                if isinstance(key, Literal) and key.identifier is not None:
                    self._write(f".{key.identifier} = ")
                else:
                    self._write("[")
                    self._write_value(key, "")
                    self._write("] = ")
                self._write_value(instruction.value, "")
                self._write("\n")
            elif isinstance(instruction, Return):
                self._write("return ")
                for position, value in enumerate(instruction.values):
                    if position:
                        self._write(",\n" + self.indent)
                    self._write_value(value, "")
                self._write("\n")
        logger.debug("Rendered %d instructions using %d variable names", len(self.instructions), pool.created)
        text = "".join(self._parts)
        if self.newline != "\n":
            text = text.replace("\n", self.newline)
        return text

    def _write(self, text: str) -> None:
        self._parts.append(text)

    def _write_value(self, value: Operand, indent: str) -> None:
        if isinstance(value, Literal):
            self._write(value.text)
            return
        instruction = self.instructions[value]
        if isinstance(instruction, Definition) and instruction.inlined:
            self._write_constructor(instruction, indent)
        else:
            self._write(self._names[value])

    def _write_constructor(self, definition: Definition, indent: str) -> None:
        self._write("{")
        if definition.pairs:
            inner = indent + self.indent
            self._write("\n" + inner)
            for position, (key, value) in enumerate(definition.pairs):
                if position:
                    self._write(",\n" + inner)
                if isinstance(key, Literal) and key.identifier is not None:
                    self._write(f"{key.identifier} = ")
                else:
                    self._write("[")
                    self._write_value(key, inner)
                    self._write("] = ")
                self._write_value(value, inner)
            self._write("\n" + indent)
        self._write("}")


def render_graph(
    graph: Table,
    externals: Optional[Mapping[Table, str]] = None,
    max_inline_depth: int = DEFAULT_MAX_INLINE_DEPTH,
    newline: str = "\n",
    indent: str = "\t",
) -> str:
    """Discover, schedule and render ``graph`` in one go."""
    discovery = discover(graph, externals)
    instructions = DefinitionScheduler(discovery, externals, max_inline_depth).schedule(graph)
    return SourceGenerator(instructions, newline=newline, indent=indent).render()
