"""Environment-driven configuration for reply splitting and the inbound hook.

Provides:
  - SplitOptions: the line/paragraph limits used to pack messages.
  - Config: settings read from the environment (and a .env file).
  - config: module-level singleton imported by the rest of the package.

Environment variables:
  REPLYSPLIT_DIR                  per-user config directory (~/.replysplit)
  REPLYSPLIT_SPLIT_LONG_MESSAGES  enable splitting of long replies
  REPLYSPLIT_MAX_LINES            line budget per message (implies enabled)
  REPLYSPLIT_MAX_PARAGRAPHS       paragraph budget per message (implies enabled)
  REPLYSPLIT_TELEGRAM_HOOK        path of the inbound hook module
"""

import logging
import os
from collections.abc import Mapping
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from dotenv import load_dotenv

logger = logging.getLogger(__name__)

DEFAULT_MAX_LINES = 20
DEFAULT_MAX_PARAGRAPHS = 4

HOOK_FILENAME = "telegram_hook.py"

_TRUE_VALUES = frozenset({"1", "true", "yes", "on"})
_FALSE_VALUES = frozenset({"0", "false", "no", "off", ""})

# Config keys accepted by SplitOptions.from_mapping, camelCase kept for
# configs shared with JSON tooling.
_OPTION_KEYS = {
    "max_lines": "max_lines",
    "maxLines": "max_lines",
    "max_paragraphs": "max_paragraphs",
    "maxParagraphs": "max_paragraphs",
}


@dataclass(frozen=True)
class SplitOptions:
    """Per-message limits. Either limit alone can start a new message."""

    max_lines: int = DEFAULT_MAX_LINES
    max_paragraphs: int = DEFAULT_MAX_PARAGRAPHS

    def __post_init__(self) -> None:
        for name in ("max_lines", "max_paragraphs"):
            value = getattr(self, name)
            if isinstance(value, bool) or not isinstance(value, int) or value < 1:
                raise ValueError(f"{name} must be a positive integer, got {value!r}")

    @classmethod
    def from_mapping(cls, mapping: Mapping[str, Any]) -> "SplitOptions":
        """Build options from a config mapping, ignoring unknown keys."""
        kwargs: dict[str, Any] = {}
        for key, value in mapping.items():
            field_name = _OPTION_KEYS.get(key)
            if field_name is not None and value is not None:
                kwargs[field_name] = value
        return cls(**kwargs)


def _parse_bool(name: str, raw: str) -> bool:
    value = raw.strip().lower()
    if value in _TRUE_VALUES:
        return True
    if value in _FALSE_VALUES:
        return False
    raise ValueError(f"{name} must be a boolean, got {raw!r}")


def _parse_int(name: str, raw: str) -> int:
    try:
        return int(raw.strip())
    except ValueError:
        raise ValueError(f"{name} must be an integer, got {raw!r}") from None


class Config:
    """Settings loaded from environment variables."""

    def __init__(self) -> None:
        self.reload()

    def reload(self) -> None:
        """Re-read the environment."""
        load_dotenv()

        self.config_dir = Path(
            os.getenv("REPLYSPLIT_DIR", "~/.replysplit")
        ).expanduser()
        self.split_long_messages = self._load_split_setting()

        hook_path = os.getenv("REPLYSPLIT_TELEGRAM_HOOK")
        self.telegram_hook_path = (
            Path(hook_path).expanduser()
            if hook_path
            else self.config_dir / HOOK_FILENAME
        )

        logger.debug(
            "Config loaded: config_dir=%s split_long_messages=%s hook=%s",
            self.config_dir,
            self.split_long_messages,
            self.telegram_hook_path,
        )

    @staticmethod
    def _load_split_setting() -> SplitOptions | bool:
        switch = os.getenv("REPLYSPLIT_SPLIT_LONG_MESSAGES")
        max_lines = os.getenv("REPLYSPLIT_MAX_LINES")
        max_paragraphs = os.getenv("REPLYSPLIT_MAX_PARAGRAPHS")

        if switch is not None and not _parse_bool(
            "REPLYSPLIT_SPLIT_LONG_MESSAGES", switch
        ):
            return False
        if switch is None and max_lines is None and max_paragraphs is None:
            return False

        overrides: dict[str, int] = {}
        if max_lines is not None:
            overrides["max_lines"] = _parse_int("REPLYSPLIT_MAX_LINES", max_lines)
        if max_paragraphs is not None:
            overrides["max_paragraphs"] = _parse_int(
                "REPLYSPLIT_MAX_PARAGRAPHS", max_paragraphs
            )
        return SplitOptions(**overrides)


config = Config()
