"""Identity-addressed key/value containers.

A :class:`Table` is the only composite value the codec understands. Tables are
hashed by identity, so they can be used as keys of other tables, shared between
several parents and arranged in cycles.

Key rules mirror the scripting host the saved files are written for:

- ``int`` and ``float`` keys are the same key when numerically equal
  (``t[2]`` is ``t[2.0]``, ``t[-0.0]`` is ``t[0]``) and are stored as ``float``.
- ``bool`` keys never collide with numbers (``t[True]`` is not ``t[1]``).
- ``str`` keys never collide with numbers (``t["2"]`` is not ``t[2]``).
- ``None`` and NaN cannot be keys; assigning ``None`` removes an entry.
"""
from __future__ import annotations

import math
from typing import Any, Dict, Iterable, Iterator, List, Optional, Tuple


# Bool keys are stored under (marker, flag) so they cannot meet 0.0 / 1.0.
_BOOL_SLOT = object()


class Table:
    """Mutable mapping with identity semantics.

    Entries keep insertion order. Values of any type may be stored, but only
    numbers, strings, booleans and tables are persisted; everything else is
    dropped when the table is saved.
    """

    __slots__ = ("_entries", "__weakref__")

    def __init__(self, items: Optional[Any] = None) -> None:
        self._entries: Dict[Any, Tuple[Any, Any]] = {}
        if items is not None:
            if hasattr(items, "items"):
                items = items.items()
            for key, value in items:
                self[key] = value

    @staticmethod
    def _slot(key: Any) -> Tuple[Any, Any]:
        """Return ``(slot, stored_key)`` for a user supplied key."""
        if key is None:
            raise KeyError("table index is None")
        if isinstance(key, bool):
            return (_BOOL_SLOT, key), key
        if isinstance(key, (int, float)):
            try:
                number = float(key)
            except OverflowError:
                raise ValueError("table index is too large for a double") from None
            if number != number:
                raise ValueError("table index is NaN")
            number += 0.0  # folds -0.0 into 0.0
            return number, number
        return key, key

    def __getitem__(self, key: Any) -> Any:
        slot, _ = self._slot(key)
        try:
            return self._entries[slot][1]
        except KeyError:
            raise KeyError(key) from None

    def __setitem__(self, key: Any, value: Any) -> None:
        slot, stored = self._slot(key)
        if value is None:
            self._entries.pop(slot, None)
        else:
            self._entries[slot] = (stored, value)

    def __delitem__(self, key: Any) -> None:
        slot, _ = self._slot(key)
        try:
            del self._entries[slot]
        except KeyError:
            raise KeyError(key) from None

    def __contains__(self, key: Any) -> bool:
        if key is None:
            return False
        if isinstance(key, float) and key != key:
            return False
        slot, _ = self._slot(key)
        return slot in self._entries

    def __len__(self) -> int:
        return len(self._entries)

    def __iter__(self) -> Iterator[Any]:
        return iter([stored for stored, _ in self._entries.values()])

    def __repr__(self) -> str:
        return f"<Table {len(self._entries)} entries at {id(self):#x}>"

    def get(self, key: Any, default: Any = None) -> Any:
        if key not in self:
            return default
        return self[key]

    def keys(self) -> List[Any]:
        return [stored for stored, _ in self._entries.values()]

    def values(self) -> List[Any]:
        return [value for _, value in self._entries.values()]

    def items(self) -> List[Tuple[Any, Any]]:
        return list(self._entries.values())

    def border(self) -> int:
        """Length of the run of integer keys 1, 2, ... n."""
        n = 0
        while float(n + 1) in self._entries:
            n += 1
        return n

    def append(self, value: Any) -> None:
        self[self.border() + 1] = value

    @classmethod
    def from_python(cls, obj: Any) -> "Table":
        """Convert nested dicts, lists and tuples into tables.

        Lists and tuples become 1-based array parts. Containers reached more than
        once become the same table, so sharing and cycles are preserved.
        """
        if isinstance(obj, Table):
            return obj
        if not isinstance(obj, (dict, list, tuple)):
            raise TypeError(f"cannot convert {type(obj).__name__} to a table")

        converted: Dict[int, Table] = {}
        pending: List[Tuple[Any, Table]] = []

        def convert(value: Any) -> Any:
            if not isinstance(value, (dict, list, tuple)):
                return value
            table = converted.get(id(value))
            if table is None:
                table = cls()
                converted[id(value)] = table
                pending.append((value, table))
            return table

        root = convert(obj)
        while pending:
            source, target = pending.pop()
            pairs: Iterable[Tuple[Any, Any]]
            if isinstance(source, dict):
                pairs = source.items()
            else:
                pairs = enumerate(source, start=1)
            for key, value in pairs:
                target[convert(key)] = convert(value)
        return root


def is_persistable(value: Any) -> bool:
    """Return True for values the codec can carry: numbers, strings, booleans, tables."""
    if isinstance(value, (bool, Table, float)):
        return True
    if isinstance(value, int):
        try:
            float(value)
        except OverflowError:
            return False
        return True
    if isinstance(value, str):
        try:
            value.encode("utf-8", "surrogateescape")
        except UnicodeEncodeError:
            return False
        return True
    return False


def persistable_items(table: Table) -> Iterator[Tuple[Any, Any]]:
    """Yield the entries of ``table`` whose key and value are both persistable."""
    for key, value in table.items():
        if is_persistable(key) and is_persistable(value):
            yield key, value


def scalars_equal(a: Any, b: Any) -> bool:
    """Scalar equality used for graph comparison.

    NaN equals NaN, ``-0.0`` differs from ``0.0`` and booleans never equal numbers.
    """
    if isinstance(a, bool) or isinstance(b, bool):
        return type(a) is type(b) and a == b
    if isinstance(a, (int, float)) and isinstance(b, (int, float)):
        x, y = float(a), float(b)
        if x != x or y != y:
            return x != x and y != y
        return x == y and math.copysign(1.0, x) == math.copysign(1.0, y)
    if isinstance(a, str) and isinstance(b, str):
        return a == b
    return False


def _signature(table: Table) -> Tuple[int, Tuple[Tuple[str, Any], ...]]:
    """Cheap shape summary that isomorphic tables always share."""
    table_keys = 0
    scalar_keys: List[Tuple[str, Any]] = []
    for key, _ in persistable_items(table):
        if isinstance(key, Table):
            table_keys += 1
        else:
            scalar_keys.append((type(key).__name__, key))
    return table_keys, tuple(sorted(scalar_keys))


# ("node", x, y) compares two tables entry by entry;
# ("keys", y, leftovers, unmatched) pairs x's table keys with those of y.
_Task = Tuple[Any, ...]


class _Matching:
    """One candidate bijection between two graphs plus the work left to check it."""

    def __init__(self, mapping: Dict[Table, Table], reverse: Dict[Table, Table], tasks: List[_Task]) -> None:
        self.mapping = mapping
        self.reverse = reverse
        self.tasks = tasks

    def copy(self) -> "_Matching":
        return _Matching(dict(self.mapping), dict(self.reverse), list(self.tasks))

    def bind(self, x: Table, y: Table) -> bool:
        known = self.mapping.get(x)
        if known is not None:
            return known is y
        if y in self.reverse:
            return False
        self.mapping[x] = y
        self.reverse[y] = x
        self.tasks.append(("node", x, y))
        return True

    def same(self, x: Any, y: Any) -> bool:
        if isinstance(x, Table) or isinstance(y, Table):
            return isinstance(x, Table) and isinstance(y, Table) and self.bind(x, y)
        return scalars_equal(x, y)

    def run(self) -> Optional[List["_Matching"]]:
        """Check tasks until done or until a table key has several possible partners.

        Returns None when every task passed, otherwise the branches still worth
        trying (an empty list when this matching failed).
        """
        while self.tasks:
            task = self.tasks.pop()
            if task[0] == "node":
                if not self._check_node(task[1], task[2]):
                    return []
                continue
            _, y, leftovers, unmatched = task
            unmatched = list(unmatched)
            remaining: List[Tuple[Table, Any]] = []
            for key, value in leftovers:
                partner = self.mapping.get(key)
                if partner is None:
                    remaining.append((key, value))
                    continue
                if partner not in unmatched or not self.same(value, y[partner]):
                    return []
                unmatched.remove(partner)
            if remaining:
                return self._branch(y, remaining, unmatched)
        return None

    def _check_node(self, x: Table, y: Table) -> bool:
        x_items = list(persistable_items(x))
        y_items = list(persistable_items(y))
        if len(x_items) != len(y_items):
            return False
        table_keys: List[Tuple[Table, Any]] = []
        unmatched = [key for key, _ in y_items if isinstance(key, Table)]
        for key, value in x_items:
            if isinstance(key, Table):
                table_keys.append((key, value))
                continue
            other = y.get(key)
            if other is None or not is_persistable(other) or not self.same(value, other):
                return False
        if len(table_keys) != len(unmatched):
            return False
        if table_keys:
            self.tasks.append(("keys", y, tuple(table_keys), tuple(unmatched)))
        return True

    def _branch(self, y: Table, remaining: List[Tuple[Table, Any]], unmatched: List[Table]) -> List["_Matching"]:
        (key, value), rest = remaining[0], remaining[1:]
        signature = _signature(key)
        branches: List[_Matching] = []
        for candidate in unmatched:
            if candidate in self.reverse or _signature(candidate) != signature:
                continue
            branch = self.copy()
            if not (branch.bind(key, candidate) and branch.same(value, y[candidate])):
                continue
            if rest:
                others = tuple(other for other in unmatched if other is not candidate)
                branch.tasks.append(("keys", y, tuple(rest), others))
            branches.append(branch)
        # the stack pops from the end, so the first candidate is tried first
        branches.reverse()
        return branches


def isomorphic(a: Table, b: Table) -> bool:
    """Return True when two table graphs have the same shape.

    Scalars are compared by value, tables through a bijection that is built while
    walking both graphs, so sharing and cycles must match too. Table-valued keys
    are paired through the bijection when it already fixes them; otherwise every
    partner with the same shape summary is tried, backtracking when the rest of
    the graph disagrees. Entries the codec would drop are ignored.
    """
    stack = [_Matching({a: b}, {b: a}, [("node", a, b)])]
    while stack:
        branches = stack.pop().run()
        if branches is None:
            return True
        stack.extend(branches)
    return False
