from importlib.metadata import version, PackageNotFoundError

from .channel import FileChannel, MemoryChannel, MessageChannel
from .config import CodecConfig, load_config
from .errors import (
    ConfigError,
    IntegrityError,
    SchedulingInvariantError,
    ScriptSyntaxError,
    TableSaveError,
    TransportError,
)
from .reader import load_script
from .saver import TableSaver, generate_script, read_transfer
from .table import Table, isomorphic

__all__ = [
    "__version__",
    "CodecConfig",
    "ConfigError",
    "FileChannel",
    "IntegrityError",
    "MemoryChannel",
    "MessageChannel",
    "SchedulingInvariantError",
    "ScriptSyntaxError",
    "Table",
    "TableSaveError",
    "TableSaver",
    "TransportError",
    "generate_script",
    "isomorphic",
    "load_config",
    "load_script",
    "read_transfer",
]

try:
    __version__ = version("tablesave")
except PackageNotFoundError:  # pragma: no cover - during tests without packaging
    __version__ = "0.0.0"
