"""
Tests for unit discovery under a template root.
"""

import logging
from pathlib import Path

import pytest

from tplgen.core.errors import DiscoveryError
from tplgen.core.services.unit_resolver import resolve_units


class TestResolveUnits:
    def test_resolves_complete_unit(self, templates_dir: Path, greeting_unit: Path):
        units = resolve_units(templates_dir)
        assert len(units) == 1
        unit = units[0]
        assert unit.name == "greeting"
        assert unit.template_path == greeting_unit.resolve() / "greeting.j2"
        assert unit.config_path == greeting_unit.resolve() / "config.yml"
        assert unit.template_path.is_absolute()

    def test_json_config_accepted(self, templates_dir: Path, make_unit):
        make_unit("api", "{}", '{"outputPath": "a.json", "data": {}}', config_name="config.json")
        units = resolve_units(templates_dir)
        assert [u.config_path.name for u in units] == ["config.json"]

    def test_skips_unit_without_template(self, templates_dir: Path, greeting_unit: Path, caplog):
        broken = templates_dir / "broken"
        broken.mkdir()
        (broken / "config.yml").write_text("outputPath: x\ndata: {}\n")

        with caplog.at_level(logging.WARNING):
            units = resolve_units(templates_dir)

        assert [u.name for u in units] == ["greeting"]
        assert "template file not found" in caplog.text
        assert "broken" in caplog.text

    def test_skips_unit_without_config(self, templates_dir: Path, greeting_unit: Path, caplog):
        broken = templates_dir / "lonely"
        broken.mkdir()
        (broken / "lonely.j2").write_text("hi")

        with caplog.at_level(logging.WARNING):
            units = resolve_units(templates_dir)

        assert [u.name for u in units] == ["greeting"]
        assert "config file not found" in caplog.text

    def test_template_must_match_directory_name(self, templates_dir: Path, caplog):
        unit_dir = templates_dir / "greeting"
        unit_dir.mkdir()
        (unit_dir / "other.j2").write_text("hi")
        (unit_dir / "config.yml").write_text("outputPath: x\ndata: {}\n")

        with caplog.at_level(logging.WARNING):
            assert resolve_units(templates_dir) == []
        assert "template file not found" in caplog.text

    def test_ignores_files_at_root(self, templates_dir: Path, greeting_unit: Path):
        (templates_dir / "README.md").write_text("not a unit")
        (templates_dir / "stray.j2").write_text("not a unit")
        assert [u.name for u in resolve_units(templates_dir)] == ["greeting"]

    def test_multiple_units(self, templates_dir: Path, make_unit):
        for name in ("a", "b", "c"):
            make_unit(name, "x", {"outputPath": f"{name}.txt", "data": {}})
        assert sorted(u.name for u in resolve_units(templates_dir)) == ["a", "b", "c"]

    def test_empty_root(self, templates_dir: Path):
        assert resolve_units(templates_dir) == []

    def test_missing_root_raises(self, tmp_path: Path):
        with pytest.raises(DiscoveryError, match="Cannot read template directory"):
            resolve_units(tmp_path / "does-not-exist")

    def test_root_is_a_file_raises(self, tmp_path: Path):
        path = tmp_path / "file.txt"
        path.write_text("x")
        with pytest.raises(DiscoveryError):
            resolve_units(path)
