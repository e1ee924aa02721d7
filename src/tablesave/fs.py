from __future__ import annotations

import logging
import os
import tempfile
from pathlib import Path

logger = logging.getLogger(__name__)


def atomic_write_bytes(path: Path, data: bytes) -> None:
    """Write a generated script next to its destination, then swap it into place.

    The data is synced to a sibling temp file first. Anyone loading the
    destination sees the previous script or the new one, never a prefix.
    """
    tmp_dir = path.parent
    tmp_dir.mkdir(parents=True, exist_ok=True)
    fd, tmp_name = tempfile.mkstemp(prefix=path.name, dir=tmp_dir)
    try:
        with os.fdopen(fd, "wb") as f:
            f.write(data)
            f.flush()
            os.fsync(f.fileno())
        os.replace(tmp_name, path)
    finally:
        if os.path.exists(tmp_name):
            try:
                os.remove(tmp_name)
            except OSError:
                logger.debug("Could not remove temp file %s", tmp_name, exc_info=True)


def atomic_write_text(path: Path, text: str) -> None:
    """Write a script as UTF-8, passing escaped raw bytes through unchanged."""
    atomic_write_bytes(path, text.encode("utf-8", "surrogateescape"))


def read_text(path: Path) -> str:
    return path.read_bytes().decode("utf-8", "surrogateescape")
