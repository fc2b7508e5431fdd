"""
Unit resolver — discover generation units under a template root.

Layout::

    templates/
      greeting/
        greeting.j2
        config.yml
      settings/
        settings.j2
        config.json

Each immediate subdirectory is a candidate. It becomes a unit only when
both its template and its config exist; otherwise it is skipped with a
warning and discovery carries on.
"""

from __future__ import annotations

import logging
import os
from pathlib import Path

from tplgen.core.config.loader import CONFIG_FILENAMES, find_config_file
from tplgen.core.errors import DiscoveryError
from tplgen.core.models.unit import GenerationUnit

logger = logging.getLogger(__name__)

TEMPLATE_SUFFIX = ".j2"


def resolve_units(root_dir: Path) -> list[GenerationUnit]:
    """List the generation units directly under ``root_dir``.

    Units come back in directory-listing order. Units are independent,
    so the order carries no meaning.

    Raises:
        DiscoveryError: If ``root_dir`` cannot be listed.
    """
    root = root_dir.resolve()

    try:
        entries = list(os.scandir(root))
    except OSError as e:
        raise DiscoveryError(f"Cannot read template directory {root}: {e}") from e

    units: list[GenerationUnit] = []
    for entry in entries:
        try:
            if not entry.is_dir():
                continue
        except OSError:
            continue

        unit = _resolve_unit(Path(entry.path))
        if unit is not None:
            units.append(unit)

    logger.info("Resolved %d unit(s) in %s", len(units), root)
    return units


def _resolve_unit(unit_dir: Path) -> GenerationUnit | None:
    name = unit_dir.name
    template_path = unit_dir / f"{name}{TEMPLATE_SUFFIX}"

    if not template_path.is_file():
        logger.warning("Skipping %s: template file not found: %s", name, template_path)
        return None

    config_path = find_config_file(unit_dir)
    if config_path is None:
        logger.warning(
            "Skipping %s: config file not found (expected one of %s in %s)",
            name,
            ", ".join(CONFIG_FILENAMES),
            unit_dir,
        )
        return None

    return GenerationUnit(
        name=name,
        template_path=template_path,
        config_path=config_path,
    )
