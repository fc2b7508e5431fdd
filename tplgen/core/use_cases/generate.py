"""
Generate use case — one-shot generation and watch mode.

Both entry points share one session: a config source, an output root
and a last-good cache. Watch mode runs a full generation pass first so
the cache holds a baseline before the first change arrives.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path

from tplgen.core.config.formatter_options import FormatterOptions, load_formatter_options
from tplgen.core.config.loader import ConfigSource, YamlConfigSource
from tplgen.core.errors import DiscoveryError
from tplgen.core.models.receipt import GenerationReceipt
from tplgen.core.models.unit import GenerationUnit
from tplgen.core.services.last_good import LastGoodCache
from tplgen.core.services.pipeline import run_unit
from tplgen.core.services.unit_resolver import resolve_units
from tplgen.core.services.watcher import DEFAULT_DEBOUNCE_S, WatchCoordinator

# Built-in example templates shipped with the package
DEFAULT_TEMPLATES_DIR = Path(__file__).resolve().parents[2] / "templates"


@dataclass
class GenerateResult:
    """Result of a generation session."""

    templates_dir: Path | None = None
    output_dir: Path | None = None
    units: list[GenerationUnit] = field(default_factory=list)
    receipts: list[GenerationReceipt] = field(default_factory=list)
    error: str | None = None

    @property
    def written(self) -> int:
        return sum(1 for r in self.receipts if r.status == "written")

    @property
    def restored(self) -> int:
        return sum(1 for r in self.receipts if r.status == "restored")

    @property
    def untouched(self) -> int:
        return sum(1 for r in self.receipts if r.status == "untouched")

    @property
    def failed(self) -> int:
        return sum(1 for r in self.receipts if r.failed)

    def to_dict(self) -> dict:
        return {
            "templates_dir": str(self.templates_dir) if self.templates_dir else None,
            "output_dir": str(self.output_dir) if self.output_dir else None,
            "error": self.error,
            "unit_count": len(self.units),
            "written": self.written,
            "restored": self.restored,
            "untouched": self.untouched,
            "receipts": [r.model_dump() for r in self.receipts],
        }


def generate_all(
    templates_dir: Path,
    output_dir: Path,
    source: ConfigSource | None = None,
    cache: LastGoodCache | None = None,
    options: FormatterOptions | None = None,
) -> GenerateResult:
    """Generate every unit under ``templates_dir`` once.

    Per-unit failures end up in receipts. Only an unreadable template
    root is reported through ``result.error``. Formatter options are
    read from the working directory when not given.
    """
    source = source or YamlConfigSource()
    options = options if options is not None else load_formatter_options()
    cache = cache if cache is not None else LastGoodCache()
    result = GenerateResult(
        templates_dir=templates_dir.resolve(),
        output_dir=output_dir.resolve(),
    )

    try:
        result.units = resolve_units(templates_dir)
    except DiscoveryError as e:
        result.error = str(e)
        return result

    for unit in result.units:
        result.receipts.append(run_unit(unit, source, result.output_dir, cache, options))

    return result


def watch(
    templates_dir: Path,
    output_dir: Path,
    *,
    debounce_s: float = DEFAULT_DEBOUNCE_S,
    source: ConfigSource | None = None,
    options: FormatterOptions | None = None,
    on_receipt=None,
) -> GenerateResult:
    """Generate everything, then re-generate on change until interrupted.

    Blocks until SIGINT/SIGTERM. The returned result holds the initial
    pass's receipts followed by every watch-triggered run.
    """
    source = source or YamlConfigSource()
    options = options if options is not None else load_formatter_options()
    cache = LastGoodCache()

    result = generate_all(templates_dir, output_dir, source=source, cache=cache, options=options)
    if result.error:
        return result

    if on_receipt is not None:
        for receipt in result.receipts:
            on_receipt(receipt)

    coordinator = WatchCoordinator(
        result.units,
        source,
        result.output_dir,
        cache,
        debounce_s=debounce_s,
        options=options,
        on_receipt=on_receipt,
    )
    coordinator.install_signal_handlers()
    coordinator.start()
    try:
        coordinator.wait()
    finally:
        coordinator.stop()

    result.receipts.extend(coordinator.receipts)
    return result
