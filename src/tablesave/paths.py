from __future__ import annotations

import logging
import os
from pathlib import Path

from platformdirs import PlatformDirs

logger = logging.getLogger(__name__)

APP_NAME = "tablesave"

# Environment variable override (useful for tests and power users)
ENV_OUTPUT_DIR = "TABLESAVE_OUTPUT_DIR"


def default_output_dir() -> Path:
    """Directory generated scripts are written to when none is configured."""
    override = os.getenv(ENV_OUTPUT_DIR)
    if override:
        return Path(override).expanduser().resolve()
    dirs = PlatformDirs(appname=APP_NAME, appauthor=False)
    return Path(dirs.user_data_dir).expanduser().resolve()


def ensure_dir(path: Path, *, mode: int = 0o700) -> Path:
    """Ensure directory exists with owner-only permissions."""
    path.mkdir(parents=True, exist_ok=True)
    try:
        os.chmod(path, mode)
    except OSError:  # Platform may not support
        logger.debug("Could not chmod directory: %s", path, exc_info=True)
    return path
