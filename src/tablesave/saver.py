"""Save and load entry points.

The saving side turns a graph into frames on a message channel. The loading
side collects the frames, checks them, rebuilds the graph and writes it out as
a script named after the destination carried in the transfer. Scripts can then
be read back with :meth:`TableSaver.load`.
"""
from __future__ import annotations

import logging
from pathlib import Path
from typing import Any, Iterable, Mapping, Optional

from .channel import MemoryChannel, MessageChannel
from .config import CodecConfig
from .errors import TableSaveError
from .framing import DEFAULT_TAG, FrameReader, FrameWriter
from .fs import atomic_write_text, read_text
from .generator import render_graph
from .paths import default_output_dir, ensure_dir
from .reader import load_script
from .stream import DecodedTransfer, StreamDecoder, StreamEncoder
from .table import Table

logger = logging.getLogger(__name__)


def generate_script(
    graph: Table,
    externals: Optional[Mapping[Table, str]] = None,
    config: Optional[CodecConfig] = None,
) -> str:
    """Return the script text that rebuilds ``graph``."""
    config = config or CodecConfig()
    return render_graph(
        graph,
        externals,
        max_inline_depth=config.max_inline_depth,
        newline=config.newline,
        indent=config.indent,
    )


def read_transfer(messages: Iterable[str], frame_tag: str = DEFAULT_TAG) -> DecodedTransfer:
    """Collect one transfer from ``messages`` and decode it.

    Stops at the end-of-transfer frame; later messages are left unread.
    """
    reader = FrameReader(frame_tag)
    for message in messages:
        reader.feed(message)
        if reader.finished or reader.failed:
            break
    return StreamDecoder().decode(reader.finalize())


def _check_destination(name: str) -> str:
    if not name or name in (".", "..") or "/" in name or "\\" in name or "\0" in name:
        raise TableSaveError(f"Refusing to write to destination {name!r}")
    return name


class TableSaver:
    """Both ends of a save/load cycle over one channel.

    ``externals`` maps host-owned tables to the expression naming them; they are
    sent by name and rendered as that expression instead of being copied.
    """

    def __init__(
        self,
        config: Optional[CodecConfig] = None,
        channel: Optional[MessageChannel] = None,
        output_dir: Optional[Path] = None,
        externals: Optional[Mapping[Table, str]] = None,
    ) -> None:
        self.config = config or CodecConfig()
        self.channel: MessageChannel = channel if channel is not None else MemoryChannel()
        self._output_dir = Path(output_dir) if output_dir is not None else self.config.output_dir
        self.externals: Mapping[Table, str] = externals or {}

    @property
    def output_dir(self) -> Path:
        if self._output_dir is None:
            self._output_dir = default_output_dir()
        return self._output_dir

    def save(self, graph: Any, destination_name: str) -> bool:
        """Send ``graph`` to be written as ``destination_name``.

        Returns False without sending anything when ``graph`` is not a table.
        """
        if not isinstance(graph, Table):
            logger.warning("Not saving %s: only tables can be saved", type(graph).__name__)
            return False
        symbols = StreamEncoder(self.externals).encode(graph, destination_name)
        writer = FrameWriter(self.config.frame_tag, self.config.max_frame_symbols)
        sent = 0
        for frame in writer.frames(symbols):
            self.channel.send(frame)
            sent += 1
        logger.info("Saved %r as %d symbols in %d messages", destination_name, len(symbols), sent)
        return True

    def receive(self, messages: Optional[Iterable[str]] = None) -> Path:
        """Rebuild the next transfer and write it as a script.

        Reads from the channel unless ``messages`` is given. Nothing is written
        when the transfer is incomplete or fails any check.
        """
        transfer = read_transfer(self.channel if messages is None else messages, self.config.frame_tag)
        name = _check_destination(transfer.destination_name)
        text = generate_script(transfer.graph, transfer.externals, self.config)
        path = ensure_dir(self.output_dir) / name
        atomic_write_text(path, text)
        logger.info("Wrote %s (%d characters)", path, len(text))
        return path

    def load(self, destination_name: str, environment: Optional[Mapping[str, Any]] = None) -> Optional[Table]:
        """Read a script written by :meth:`receive`; None when it does not exist."""
        path = self.output_dir / _check_destination(destination_name)
        if not path.exists():
            logger.info("No saved script at %s", path)
            return None
        result = load_script(read_text(path), environment)
        if not isinstance(result, Table):
            raise TableSaveError(f"{path} does not return a table")
        logger.info("Loaded %s", path)
        return result
