"""Short variable names for hoisted table definitions."""
from __future__ import annotations

from typing import Dict, List, Tuple

SINGLE_LETTER_NAMES = 18
TWO_LETTER_NAMES = 175
OVERFLOW_TABLE = "z"


class VariableNamePool:
    """Hands out variable names, shortest released name first.

    Fresh names run ``a`` .. ``r``, then ``sa`` .. ``yy`` (second letter ``a`` ..
    ``y``), then slots of an overflow table ``z[1]``, ``z[2]``, ... Each name comes
    with the text to write before and after the table constructor.
    """

    def __init__(self) -> None:
        self._released: Dict[int, List[str]] = {}
        self._created = 0

    @property
    def created(self) -> int:
        return self._created

    def acquire(self) -> Tuple[str, str, str]:
        """Return ``(name, prefix, suffix)`` for a new definition."""
        for length in sorted(self._released):
            names = self._released[length]
            if names:
                name = names.pop()
                return name, f"{name} = ", "\n"
        self._created += 1
        n = self._created
        if n <= SINGLE_LETTER_NAMES:
            name = chr(96 + n)
            return name, f"local {name} = ", "\n"
        if n <= SINGLE_LETTER_NAMES + TWO_LETTER_NAMES:
            first, second = divmod(n - SINGLE_LETTER_NAMES - 1, 25)
            name = chr(115 + first) + chr(97 + second)
            return name, f"local {name} = ", "\n"
        slot = n - SINGLE_LETTER_NAMES - TWO_LETTER_NAMES
        name = f"{OVERFLOW_TABLE}[{slot}]"
        if slot == 1:
            return name, f"local {OVERFLOW_TABLE} = {{", "}\n"
        return name, f"{name} = ", "\n"

    def release(self, name: str) -> None:
        self._released.setdefault(len(name), []).append(name)
