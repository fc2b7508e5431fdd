"""
Shared test fixtures.
"""

import logging
from pathlib import Path

import pytest
import yaml


@pytest.fixture(autouse=True)
def _restore_root_logger():
    """CLI tests call setup_logging(); undo it so other tests see a clean root."""
    root = logging.getLogger()
    handlers, level = list(root.handlers), root.level
    yield
    root.handlers[:] = handlers
    root.setLevel(level)


@pytest.fixture
def templates_dir(tmp_path: Path) -> Path:
    path = tmp_path / "templates"
    path.mkdir()
    return path


@pytest.fixture
def output_dir(tmp_path: Path) -> Path:
    return tmp_path / "output"


@pytest.fixture
def make_unit(templates_dir: Path):
    """Create ``<templates>/<name>/<name>.j2`` plus a config file."""

    def _make(
        name: str,
        template: str,
        config: dict | str,
        config_name: str = "config.yml",
    ) -> Path:
        unit_dir = templates_dir / name
        unit_dir.mkdir(exist_ok=True)
        (unit_dir / f"{name}.j2").write_text(template, encoding="utf-8")
        text = config if isinstance(config, str) else yaml.safe_dump(config)
        (unit_dir / config_name).write_text(text, encoding="utf-8")
        return unit_dir

    return _make


@pytest.fixture
def greeting_unit(make_unit) -> Path:
    return make_unit(
        "greeting",
        "Hello {{ name }}\n",
        {"outputPath": "greeting.txt", "data": {"name": "Ada"}},
    )
