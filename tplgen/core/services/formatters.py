"""
Output formatters — validate and normalize rendered text before writing.

The formatter is chosen from the output file suffix. A formatter either
returns the text to write or raises ``FormatError``; rejected output is
never written. Every formatter is idempotent for a given set of options.

Parser failures of any kind (bad syntax, nesting too deep for the
parser, NUL bytes) surface as ``FormatError``.
"""

from __future__ import annotations

import ast
import json
from collections.abc import Callable
from pathlib import Path

import yaml

from tplgen.core.config.formatter_options import DEFAULT_FORMATTER_OPTIONS, FormatterOptions
from tplgen.core.errors import FormatError

Formatter = Callable[..., str]

# Raised by the stdlib/PyYAML parsers on input they cannot handle at all
_PARSER_LIMITS = (RecursionError, MemoryError, ValueError)


def normalize_whitespace(text: str, options: FormatterOptions = DEFAULT_FORMATTER_OPTIONS) -> str:
    """Strip trailing spaces on every line; end with one newline unless disabled."""
    lines = [line.rstrip() for line in text.splitlines()]
    while lines and not lines[-1]:
        lines.pop()
    if not lines:
        return ""
    return "\n".join(lines) + ("\n" if options.final_newline else "")


def format_json(text: str, options: FormatterOptions = DEFAULT_FORMATTER_OPTIONS) -> str:
    try:
        parsed = json.loads(text)
    except json.JSONDecodeError as e:
        raise FormatError(f"Invalid JSON at line {e.lineno} column {e.colno}: {e.msg}") from e
    except _PARSER_LIMITS as e:
        raise FormatError(f"Invalid JSON: {type(e).__name__}: {e}") from e

    try:
        dumped = json.dumps(
            parsed,
            indent=options.json_indent,
            sort_keys=options.json_sort_keys,
            ensure_ascii=options.ensure_ascii,
        )
    except _PARSER_LIMITS as e:
        raise FormatError(f"Cannot re-serialize JSON: {type(e).__name__}: {e}") from e
    return dumped + ("\n" if options.final_newline else "")


def format_yaml(text: str, options: FormatterOptions = DEFAULT_FORMATTER_OPTIONS) -> str:
    try:
        yaml.safe_load(text)
    except yaml.YAMLError as e:
        raise FormatError(f"Invalid YAML: {e}") from e
    except _PARSER_LIMITS as e:
        raise FormatError(f"Invalid YAML: {type(e).__name__}: {e}") from e
    return normalize_whitespace(text, options)


def format_python(text: str, options: FormatterOptions = DEFAULT_FORMATTER_OPTIONS) -> str:
    normalized = normalize_whitespace(text, options)
    try:
        ast.parse(normalized)
    except SyntaxError as e:
        raise FormatError(f"Invalid Python on line {e.lineno}: {e.msg}") from e
    except _PARSER_LIMITS as e:
        raise FormatError(f"Invalid Python: {type(e).__name__}: {e}") from e
    return normalized


# ── Suffix → formatter ──────────────────────────────────────────

FORMATTERS: dict[str, Formatter] = {
    ".json": format_json,
    ".yml": format_yaml,
    ".yaml": format_yaml,
    ".py": format_python,
}


def get_formatter(output_path: Path | str) -> Formatter:
    """Pick the formatter for an output file (plain text if unknown)."""
    suffix = Path(output_path).suffix.lower()
    return FORMATTERS.get(suffix, normalize_whitespace)


def format_output(
    text: str,
    output_path: Path | str,
    options: FormatterOptions | None = None,
) -> str:
    """Format rendered text for ``output_path``.

    Raises:
        FormatError: If the formatter rejects the text.
    """
    if options is None:
        options = DEFAULT_FORMATTER_OPTIONS
    return get_formatter(output_path)(text, options)
