from __future__ import annotations

import logging
from dataclasses import dataclass, fields
from importlib.resources import files as resource_files
from pathlib import Path
from typing import Any, Dict, Optional, Union

import yaml

from .errors import ConfigError
from .framing import DEFAULT_MAX_FRAME_SYMBOLS, DEFAULT_TAG
from .scheduler import DEFAULT_MAX_INLINE_DEPTH

logger = logging.getLogger(__name__)

NEWLINES = ("\n", "\r\n")


@dataclass(frozen=True)
class CodecConfig:
    """Settings shared by the saving and the loading side.

    ``frame_tag`` and ``max_frame_symbols`` shape the transport and must match on
    both ends; the remaining fields only affect the generated script text.
    """

    frame_tag: str = DEFAULT_TAG
    max_frame_symbols: int = DEFAULT_MAX_FRAME_SYMBOLS
    max_inline_depth: int = DEFAULT_MAX_INLINE_DEPTH
    newline: str = "\n"
    indent: str = "\t"
    output_dir: Optional[Path] = None

    def __post_init__(self) -> None:
        tag = self.frame_tag
        if not isinstance(tag, str) or not tag or "%" in tag or not all(" " < c <= "~" for c in tag):
            raise ConfigError(f"frame_tag must be printable ASCII without '%': {tag!r}")
        for name in ("max_frame_symbols", "max_inline_depth"):
            value = getattr(self, name)
            if isinstance(value, bool) or not isinstance(value, int) or value < 1:
                raise ConfigError(f"{name} must be a positive integer, got {value!r}")
        if self.newline not in NEWLINES:
            raise ConfigError(f"newline must be one of {NEWLINES!r}, got {self.newline!r}")
        if not isinstance(self.indent, str) or (self.indent and not self.indent.isspace()):
            raise ConfigError(f"indent must be whitespace, got {self.indent!r}")
        if self.output_dir is not None and not isinstance(self.output_dir, Path):
            object.__setattr__(self, "output_dir", Path(self.output_dir).expanduser())

    @classmethod
    def from_dict(cls, raw: Dict[str, Any]) -> "CodecConfig":
        known = {f.name for f in fields(cls)}
        unknown = sorted(set(raw) - known)
        if unknown:
            logger.warning("Ignoring unknown config keys: %s", ", ".join(unknown))
        return cls(**{k: v for k, v in raw.items() if k in known})


def load_config(path: Optional[Union[str, Path]] = None) -> CodecConfig:
    """Load codec settings from YAML.

    If path is None, loads the embedded default resource at
    tablesave/defaults.yaml.
    """
    try:
        if path is None:
            data = resource_files("tablesave").joinpath("defaults.yaml").read_text(encoding="utf-8")
            logger.debug("Loaded embedded default config resource")
        else:
            with open(path, "r", encoding="utf-8") as f:
                data = f.read()
            logger.debug("Loaded config from path: %s", path)
    except OSError as exc:
        raise ConfigError(f"Unable to read config {path}: {exc}") from exc

    try:
        raw = yaml.safe_load(data) or {}
    except yaml.YAMLError as exc:
        raise ConfigError(f"Invalid YAML in config {path or 'defaults.yaml'}: {exc}") from exc
    if not isinstance(raw, dict):
        raise ConfigError(f"Config must be a mapping, got {type(raw).__name__}")
    try:
        config = CodecConfig.from_dict(raw)
    except TypeError as exc:
        raise ConfigError(str(exc)) from exc
    logger.debug("Codec config: %s", config)
    return config
