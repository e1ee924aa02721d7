class TableSaveError(Exception):
    """Base exception for save/load errors."""


class TransportError(TableSaveError):
    """Raised when a transfer is malformed, out of sequence or the channel fails.

    The whole pending transfer is discarded; nothing is materialized.
    """


class IntegrityError(TransportError):
    """Raised when a reassembled transfer fails its checksum or cannot be decoded."""


class SchedulingInvariantError(TableSaveError):
    """Raised when a table is left undefined after scheduling.

    This is an internal consistency failure, not a condition worth retrying.
    """


class ScriptSyntaxError(TableSaveError, ValueError):
    """Raised when a saved script cannot be parsed back into a table."""


class ConfigError(TableSaveError, ValueError):
    """Raised when configuration values are invalid."""
