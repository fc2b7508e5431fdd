"""
Logging setup for tplgen.

``setup_logging()`` is called once by the CLI. It decides the level from
the CLI flags and environment, and tags every record with the unit and
outcome the pipeline attaches (``extra={"unit": ..., "outcome": ...}``)
so restores stand out from fresh writes in the log file.

Level precedence:
    --debug  >  --verbose  >  --quiet  >  TPLGEN_LOG_LEVEL
        >  INFO in watch mode  >  WARNING

Environment:
    TPLGEN_LOG_LEVEL       console level when no flag is given
    TPLGEN_LOG_FILE        also log to this file
    TPLGEN_LOG_FILE_LEVEL  file level (default: console level)
"""

from __future__ import annotations

import logging
import os
import sys

ENV_LEVEL = "TPLGEN_LOG_LEVEL"
ENV_FILE = "TPLGEN_LOG_FILE"
ENV_FILE_LEVEL = "TPLGEN_LOG_FILE_LEVEL"

# Console: quiet by default, unit outcomes at INFO, full detail at DEBUG
_CONSOLE_FORMATS = {
    logging.DEBUG: ("%(asctime)s %(levelname)-5s %(name)s:%(lineno)d %(message)s", "%H:%M:%S"),
    logging.INFO: ("%(asctime)s %(message)s", "%H:%M:%S"),
}
_CONSOLE_DEFAULT = ("%(message)s", None)

# File: one greppable line per attempt, e.g. "... [greeting:restored] ..."
_FILE_FORMAT = "%(asctime)s %(levelname)-7s [%(unit)s:%(outcome)s] %(threadName)s %(name)s %(message)s"
_FILE_DATEFMT = "%Y-%m-%d %H:%M:%S"


class UnitContextFilter(logging.Filter):
    """Give every record ``unit`` and ``outcome`` so the formats never KeyError."""

    def filter(self, record: logging.LogRecord) -> bool:
        if not hasattr(record, "unit"):
            record.unit = "-"
        if not hasattr(record, "outcome"):
            record.outcome = "-"
        return True


def resolve_level(
    *,
    debug: bool = False,
    verbose: bool = False,
    quiet: bool = False,
    watch: bool = False,
) -> int:
    """Pick the console level from CLI flags, then env, then mode default."""
    if debug:
        return logging.DEBUG
    if verbose:
        return logging.INFO
    if quiet:
        return logging.ERROR
    env_level = os.environ.get(ENV_LEVEL)
    if env_level:
        return parse_level(env_level)
    return logging.INFO if watch else logging.WARNING


def setup_logging(
    *,
    debug: bool = False,
    verbose: bool = False,
    quiet: bool = False,
    watch: bool = False,
    log_file: str | None = None,
    log_file_level: str | None = None,
) -> int:
    """Configure the root logger for a tplgen run.

    Args:
        debug / verbose / quiet: CLI verbosity flags.
        watch: Watch mode logs each regeneration by default.
        log_file: Log file path (default: ``TPLGEN_LOG_FILE``).
        log_file_level: File level name (default: ``TPLGEN_LOG_FILE_LEVEL``,
            then the console level).

    Returns:
        The console level in effect.
    """
    level = resolve_level(debug=debug, verbose=verbose, quiet=quiet, watch=watch)
    context = UnitContextFilter()

    fmt, datefmt = _CONSOLE_FORMATS.get(level, _CONSOLE_DEFAULT)
    console = logging.StreamHandler(sys.stderr)
    console.setLevel(level)
    console.setFormatter(logging.Formatter(fmt, datefmt=datefmt))
    console.addFilter(context)

    root = logging.getLogger()
    root.handlers.clear()
    root.addHandler(console)
    root_level = level

    log_file = log_file or os.environ.get(ENV_FILE)
    if log_file:
        file_level_name = log_file_level or os.environ.get(ENV_FILE_LEVEL)
        file_level = parse_level(file_level_name) if file_level_name else level
        fh = logging.FileHandler(log_file, encoding="utf-8")
        fh.setLevel(file_level)
        fh.setFormatter(logging.Formatter(_FILE_FORMAT, datefmt=_FILE_DATEFMT))
        fh.addFilter(context)
        root.addHandler(fh)
        root_level = min(root_level, file_level)

    root.setLevel(root_level)

    # watchdog is chatty about every inotify event below WARNING
    logging.getLogger("watchdog").setLevel(logging.DEBUG if debug else logging.WARNING)
    return level


def parse_level(level: str | None) -> int:
    """Convert a level name to its numeric constant (WARNING if unknown)."""
    if not level:
        return logging.WARNING
    numeric = getattr(logging, level.upper(), None)
    if not isinstance(numeric, int):
        return logging.WARNING
    return numeric
