"""
Formatter options — optional project-level settings for output formatting.

Looked up once per session in the working directory (``.tplgen.yml`` or
``.tplgen.yaml``). The options may sit under a ``formatter:`` key or be
flat. A missing or broken file falls back to the built-in defaults; the
log says which one applied.
"""

from __future__ import annotations

import logging
from pathlib import Path

import yaml
from pydantic import BaseModel, ConfigDict, Field, ValidationError

logger = logging.getLogger(__name__)

FORMATTER_CONFIG_FILES = (".tplgen.yml", ".tplgen.yaml")


class FormatterOptions(BaseModel):
    """Knobs the output formatters honor."""

    model_config = ConfigDict(populate_by_name=True, extra="forbid", frozen=True)

    json_indent: int = Field(default=2, ge=0, le=8, alias="jsonIndent")
    json_sort_keys: bool = Field(default=False, alias="jsonSortKeys")
    ensure_ascii: bool = Field(default=False, alias="ensureAscii")
    final_newline: bool = Field(default=True, alias="finalNewline")


DEFAULT_FORMATTER_OPTIONS = FormatterOptions()


def find_formatter_config(start_dir: Path | None = None) -> Path | None:
    """Return the project formatter config in ``start_dir`` (default: cwd)."""
    directory = (start_dir or Path.cwd()).resolve()
    for name in FORMATTER_CONFIG_FILES:
        candidate = directory / name
        if candidate.is_file():
            return candidate
    return None


def load_formatter_options(start_dir: Path | None = None) -> FormatterOptions:
    """Load project formatter options, or the defaults if there are none.

    Never raises: an unreadable or invalid file is logged and ignored.
    """
    path = find_formatter_config(start_dir)
    if path is None:
        logger.info("Using default formatter config")
        return DEFAULT_FORMATTER_OPTIONS

    try:
        data = yaml.safe_load(path.read_text(encoding="utf-8")) or {}
        if not isinstance(data, dict):
            raise ValueError(f"expected a mapping, got {type(data).__name__}")
        section = data.get("formatter", data)
        if not isinstance(section, dict):
            raise ValueError(f"expected 'formatter' to be a mapping, got {type(section).__name__}")
        options = FormatterOptions.model_validate(section)
    except (OSError, yaml.YAMLError, ValidationError, ValueError, RecursionError) as e:
        logger.warning("Ignoring formatter config %s (%s); using defaults", path, e)
        return DEFAULT_FORMATTER_OPTIONS

    logger.info("Using formatter config from %s", path)
    return options
