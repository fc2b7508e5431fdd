"""
tplgen — CLI entrypoint.

Usage:
    tplgen [TEMPLATES] [--output DIR]
    tplgen [TEMPLATES] --watch
    python -m tplgen.main --help
"""

from __future__ import annotations

import json
import sys
from pathlib import Path

import click

from tplgen import __version__
from tplgen.core.config.formatter_options import FormatterOptions, load_formatter_options
from tplgen.core.models.receipt import GenerationReceipt
from tplgen.core.observability.logging_config import setup_logging
from tplgen.core.services.watcher import DEFAULT_DEBOUNCE_S
from tplgen.core.use_cases.generate import DEFAULT_TEMPLATES_DIR

_STATUS_STYLE = {
    "written": ("✓", "green"),
    "restored": ("↺", "yellow"),
    "untouched": ("✗", "red"),
}


@click.command()
@click.version_option(version=__version__, prog_name="tplgen")
@click.argument(
    "templates",
    type=click.Path(file_okay=False, path_type=Path),
    default=DEFAULT_TEMPLATES_DIR,
)
@click.option("--watch", "-w", is_flag=True, help="Regenerate files when templates or configs change.")
@click.option(
    "--output",
    "-o",
    "output_dir",
    type=click.Path(file_okay=False, path_type=Path),
    default="output",
    envvar="TPLGEN_OUTPUT",
    show_default=True,
    help="Output directory for generated files.",
)
@click.option(
    "--debounce-ms",
    type=click.IntRange(min=0),
    default=int(DEFAULT_DEBOUNCE_S * 1000),
    envvar="TPLGEN_DEBOUNCE_MS",
    show_default=True,
    help="Quiet period after the last write before regenerating (watch mode).",
)
@click.option("--json-output", "--json", "as_json", is_flag=True, help="Output as JSON.")
@click.option("--verbose", "-v", is_flag=True, help="Log every generation attempt.")
@click.option("--quiet", "-q", is_flag=True, help="Only log errors.")
@click.option("--debug", is_flag=True, help="Enable debug logging (very verbose).")
def cli(
    templates: Path,
    watch: bool,
    output_dir: Path,
    debounce_ms: int,
    as_json: bool,
    verbose: bool,
    quiet: bool,
    debug: bool,
) -> None:
    """Generate files from the template units in TEMPLATES.

    Each subdirectory NAME of TEMPLATES holds NAME.j2 and config.yml
    (outputPath + data). Output lands in OUTPUT/<outputPath>.

    Examples:

        tplgen templates -o build

        tplgen templates --watch
    """
    setup_logging(debug=debug, verbose=verbose, quiet=quiet, watch=watch)
    options = load_formatter_options()

    if watch:
        _run_watch(templates, output_dir, debounce_ms / 1000, quiet, options)
    else:
        _run_once(templates, output_dir, as_json, quiet, options)


def _run_once(
    templates: Path,
    output_dir: Path,
    as_json: bool,
    quiet: bool,
    options: FormatterOptions,
) -> None:
    from tplgen.core.use_cases.generate import generate_all

    result = generate_all(templates, output_dir, options=options)

    if as_json:
        click.echo(json.dumps(result.to_dict(), indent=2))
        sys.exit(1 if result.error else 0)

    if result.error:
        click.secho(f"❌ {result.error}", fg="red")
        sys.exit(1)

    if not quiet:
        click.secho(f"\n⚙️  {result.templates_dir} → {result.output_dir}", fg="cyan", bold=True)
        click.echo()

    for receipt in result.receipts:
        _echo_receipt(receipt)

    if not result.units:
        click.secho("   ⚠️  No template units found.", fg="yellow")

    click.echo()
    color = "green" if result.failed == 0 else "yellow"
    click.secho(
        f"   Result: {result.written}/{len(result.units)} generated"
        + (f", {result.restored} restored" if result.restored else "")
        + (f", {result.untouched} failed" if result.untouched else ""),
        fg=color,
        bold=True,
    )
    click.echo()


def _run_watch(
    templates: Path,
    output_dir: Path,
    debounce_s: float,
    quiet: bool,
    options: FormatterOptions,
) -> None:
    from tplgen.core.use_cases.generate import watch

    if not quiet:
        click.echo()
        click.secho("👀 tplgen — watch mode", bold=True)
        click.echo(f"   Templates: {templates.resolve()}")
        click.echo(f"   Output:    {output_dir.resolve()}")
        click.echo("   Press Ctrl-C to stop.")
        click.echo()

    result = watch(
        templates,
        output_dir,
        debounce_s=debounce_s,
        options=options,
        on_receipt=_echo_receipt,
    )

    if result.error:
        click.secho(f"❌ {result.error}", fg="red")
        sys.exit(1)

    click.echo()
    click.secho("   Stopped watching.", fg="cyan")


def _echo_receipt(receipt: GenerationReceipt) -> None:
    icon, color = _STATUS_STYLE[receipt.status]
    click.secho(f"   {icon} {receipt.unit} ", fg=color, nl=False)
    if receipt.status == "written":
        click.echo(f"→ {receipt.output_path} ({receipt.duration_ms}ms)")
    elif receipt.status == "restored":
        click.echo(f"restored last good output → {receipt.output_path}")
        click.echo(f"     │ {receipt.error}")
    else:
        click.echo("(not written)")
        for line in (receipt.error or "").split("\n")[:5]:
            click.echo(f"     │ {line}")


if __name__ == "__main__":
    cli()
