"""
Render → format → write pipeline for a single unit.

``run_unit`` never raises. Each call ends in one terminal action:

    1. written    config loads, template renders, formatter accepts,
                  file written, last-good cache updated
    2. restored   render or format failed and a last-good output exists,
                  so it is rewritten to the output path
    3. untouched  anything failed and there is nothing to restore
                  (or the config/write itself failed)

The output file is therefore always the last fully valid generation, or
absent. Never a half-rendered or unformatted file.
"""

from __future__ import annotations

import logging
import os
import tempfile
import time
from collections.abc import Callable
from pathlib import Path

from tplgen.core.config.formatter_options import FormatterOptions
from tplgen.core.config.loader import ConfigSource
from tplgen.core.errors import ConfigLoadError, FormatError, RenderError, WriteError
from tplgen.core.models.receipt import GenerationReceipt
from tplgen.core.models.unit import GenerationUnit
from tplgen.core.services.formatters import format_output
from tplgen.core.services.last_good import LastGoodCache
from tplgen.core.services.renderer import render

logger = logging.getLogger(__name__)


def run_unit(
    unit: GenerationUnit,
    source: ConfigSource,
    output_root: Path,
    cache: LastGoodCache,
    options: FormatterOptions | None = None,
) -> GenerationReceipt:
    """Generate one unit and report what happened.

    Args:
        unit: The unit to generate.
        source: Where to load the unit's config from (reloaded every call).
        output_root: Directory that config output paths are relative to.
        cache: Last-good outputs, shared across runs in a session.
        options: Formatter options (defaults when None).

    Returns:
        GenerationReceipt describing the terminal action.
    """
    start = time.monotonic()

    def _elapsed() -> int:
        return int((time.monotonic() - start) * 1000)

    # ── Config ──────────────────────────────────────────────────
    try:
        config = source.load(unit.config_path)
    except Exception as e:
        message = str(e) if isinstance(e, ConfigLoadError) else f"{type(e).__name__}: {e}"
        logger.error(
            "✗ %s: config failed to load: %s", unit.name, message, extra=_log_context(unit, "untouched")
        )
        return GenerationReceipt.untouched(unit.name, error=message, duration_ms=_elapsed())

    output_path = config.resolve_output(output_root)

    # ── Render + format ─────────────────────────────────────────
    try:
        formatted = _render_and_format(unit, config.data, output_path, options)
    except (RenderError, FormatError) as e:
        return _recover(unit, output_path, cache, e, _elapsed)
    except Exception as e:
        logger.debug("Unexpected error generating %s", unit.name, exc_info=True)
        return _recover(unit, output_path, cache, e, _elapsed)

    # ── Commit ──────────────────────────────────────────────────
    try:
        _write(output_path, formatted)
    except WriteError as e:
        logger.error("✗ %s: %s", unit.name, e, extra=_log_context(unit, "untouched"))
        return GenerationReceipt.untouched(
            unit.name, error=str(e), output_path=str(output_path), duration_ms=_elapsed()
        )

    cache.remember(unit.template_path, formatted)
    logger.info("✓ %s → %s", unit.name, output_path, extra=_log_context(unit, "written"))
    return GenerationReceipt.written(unit.name, str(output_path), duration_ms=_elapsed())


def _log_context(unit: GenerationUnit, outcome: str) -> dict[str, str]:
    return {"unit": unit.name, "outcome": outcome}


def _render_and_format(
    unit: GenerationUnit,
    data: dict,
    output_path: Path,
    options: FormatterOptions | None,
) -> str:
    try:
        template_text = unit.template_path.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as e:
        raise RenderError(f"Cannot read template {unit.template_path}: {e}") from e

    rendered = render(template_text, data)
    return format_output(rendered, output_path, options)


def _recover(
    unit: GenerationUnit,
    output_path: Path,
    cache: LastGoodCache,
    error: Exception,
    elapsed: Callable[[], int],
) -> GenerationReceipt:
    if isinstance(error, RenderError):
        kind, message = "render", str(error)
    elif isinstance(error, FormatError):
        kind, message = "format", str(error)
    else:
        kind, message = "generation", f"{type(error).__name__}: {error}"
    logger.error(
        "✗ %s: %s failed: %s", unit.name, kind, message, extra=_log_context(unit, "failed")
    )

    last_good = cache.get(unit.template_path)
    if last_good is None:
        logger.info(
            "  %s: no previous output to restore, leaving filesystem untouched",
            unit.name,
            extra=_log_context(unit, "untouched"),
        )
        return GenerationReceipt.untouched(
            unit.name, error=message, output_path=str(output_path), duration_ms=elapsed()
        )

    try:
        _write(output_path, last_good)
    except WriteError as e:
        logger.error("✗ %s: restore failed: %s", unit.name, e, extra=_log_context(unit, "untouched"))
        return GenerationReceipt.untouched(
            unit.name,
            error=f"{message}; restore failed: {e}",
            output_path=str(output_path),
            duration_ms=elapsed(),
        )

    logger.warning(
        "↺ %s: restored last good output → %s",
        unit.name,
        output_path,
        extra=_log_context(unit, "restored"),
    )
    return GenerationReceipt.restore(
        unit.name, str(output_path), error=message, duration_ms=elapsed()
    )


def _write(path: Path, content: str) -> None:
    """Atomic write: temp file in the same directory, then rename."""
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_name = tempfile.mkstemp(dir=path.parent, prefix=f".{path.name}.", suffix=".tmp")
        tmp = Path(tmp_name)
        try:
            with os.fdopen(fd, "w", encoding="utf-8", newline="") as f:
                f.write(content)
            tmp.chmod(0o644)
            tmp.replace(path)
        except BaseException:
            tmp.unlink(missing_ok=True)
            raise
    except OSError as e:
        raise WriteError(f"Cannot write {path}: {e}") from e
