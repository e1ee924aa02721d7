"""Message channels that carry frames between the saving and the loading side."""
from __future__ import annotations

import io
import logging
from pathlib import Path
from typing import Iterable, Iterator, List, Optional, Protocol

from .errors import TransportError

logger = logging.getLogger(__name__)


class MessageChannel(Protocol):
    """Outbound ``send`` plus iteration over the inbound messages."""

    def send(self, message: str) -> None:
        ...

    def __iter__(self) -> Iterator[str]:
        ...


class MemoryChannel:
    """In-process channel, mostly useful for tests and same-process round trips."""

    def __init__(self, messages: Optional[Iterable[str]] = None) -> None:
        self.messages: List[str] = list(messages or [])

    def send(self, message: str) -> None:
        self.messages.append(message)

    def __iter__(self) -> Iterator[str]:
        return iter(list(self.messages))

    def clear(self) -> None:
        self.messages.clear()


class FileChannel:
    """Channel backed by a text file holding one message per line.

    Stands in for the host's debug-output stream: the saving side appends frames,
    the loading side reads them back in order.
    """

    def __init__(self, path: Path | str) -> None:
        self.path = Path(path)

    def send(self, message: str) -> None:
        try:
            with self.path.open("a", encoding="ascii", newline="\n") as f:
                f.write(message)
        except OSError as exc:
            raise TransportError(f"Unable to write frame to {self.path}: {exc}") from exc

    def __iter__(self) -> Iterator[str]:
        try:
            text = self.path.read_text(encoding="latin-1")
        except OSError as exc:
            raise TransportError(f"Unable to read frames from {self.path}: {exc}") from exc
        lines = list(io.StringIO(text))
        logger.debug("Read %d messages from %s", len(lines), self.path)
        return iter(lines)

    def clear(self) -> None:
        try:
            self.path.unlink()
        except FileNotFoundError:
            pass
        except OSError as exc:
            raise TransportError(f"Unable to reset channel file {self.path}: {exc}") from exc
