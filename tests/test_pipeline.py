"""
Tests for the render → format → write pipeline and last-good restore.
"""

import logging
from pathlib import Path

import pytest

from tplgen.core.config.loader import YamlConfigSource
from tplgen.core.services.formatters import format_output
from tplgen.core.services.last_good import LastGoodCache
from tplgen.core.services.pipeline import run_unit
from tplgen.core.services.renderer import render
from tplgen.core.services.unit_resolver import resolve_units


@pytest.fixture
def source() -> YamlConfigSource:
    return YamlConfigSource()


@pytest.fixture
def cache() -> LastGoodCache:
    return LastGoodCache()


def _only_unit(templates_dir: Path):
    units = resolve_units(templates_dir)
    assert len(units) == 1
    return units[0]


class TestLastGoodCache:
    def test_remember_and_get(self, tmp_path: Path):
        cache = LastGoodCache()
        key = tmp_path / "a.j2"
        assert cache.get(key) is None
        assert key not in cache
        cache.remember(key, "content")
        assert cache.get(key) == "content"
        assert key in cache
        assert len(cache) == 1

    def test_latest_wins(self, tmp_path: Path):
        cache = LastGoodCache()
        key = tmp_path / "a.j2"
        cache.remember(key, "one")
        cache.remember(key, "two")
        assert cache.get(key) == "two"
        assert len(cache) == 1

    def test_clear(self, tmp_path: Path):
        cache = LastGoodCache()
        cache.remember(tmp_path / "a.j2", "x")
        cache.clear()
        assert len(cache) == 0


class TestSuccessPath:
    def test_greeting_scenario(self, templates_dir, greeting_unit, output_dir, source, cache):
        unit = _only_unit(templates_dir)

        receipt = run_unit(unit, source, output_dir, cache)

        out = output_dir / "greeting.txt"
        assert receipt.status == "written"
        assert receipt.output_path == str(out)
        assert out.read_text() == "Hello Ada\n"
        assert cache.get(unit.template_path) == "Hello Ada\n"

    def test_output_equals_format_of_render(self, templates_dir, make_unit, output_dir, source, cache):
        template = '{"name": "{{ name }}", "tags": [{% for t in tags %}"{{ t }}"{{ "," if not loop.last else "" }}{% endfor %}]}'
        data = {"name": "api", "tags": ["a", "b"]}
        make_unit("api", template, {"outputPath": "api.json", "data": data})
        unit = _only_unit(templates_dir)

        run_unit(unit, source, output_dir, cache)

        expected = format_output(render(template, data), "api.json")
        assert (output_dir / "api.json").read_text() == expected

    def test_creates_parent_directories(self, templates_dir, make_unit, output_dir, source, cache):
        make_unit("deep", "x = 1\n", {"outputPath": "a/b/c/deep.py", "data": {}})
        run_unit(_only_unit(templates_dir), source, output_dir, cache)
        assert (output_dir / "a" / "b" / "c" / "deep.py").read_text() == "x = 1\n"

    def test_idempotent(self, templates_dir, greeting_unit, output_dir, source, cache):
        unit = _only_unit(templates_dir)
        out = output_dir / "greeting.txt"

        run_unit(unit, source, output_dir, cache)
        first = out.read_bytes()
        run_unit(unit, source, output_dir, cache)
        assert out.read_bytes() == first

    def test_config_reloaded_each_run(self, templates_dir, greeting_unit, output_dir, source, cache):
        unit = _only_unit(templates_dir)
        run_unit(unit, source, output_dir, cache)

        unit.config_path.write_text("outputPath: greeting.txt\ndata: {name: Grace}\n")
        run_unit(unit, source, output_dir, cache)

        assert (output_dir / "greeting.txt").read_text() == "Hello Grace\n"

    def test_no_temp_files_left_behind(self, templates_dir, greeting_unit, output_dir, source, cache):
        run_unit(_only_unit(templates_dir), source, output_dir, cache)
        assert [p.name for p in output_dir.iterdir()] == ["greeting.txt"]


class TestFailurePath:
    def test_first_attempt_fails_no_output(self, templates_dir, make_unit, output_dir, source, cache):
        make_unit("greeting", "Hello {{ name ", {"outputPath": "greeting.txt", "data": {"name": "Ada"}})
        unit = _only_unit(templates_dir)

        receipt = run_unit(unit, source, output_dir, cache)

        assert receipt.status == "untouched"
        assert receipt.error
        assert not (output_dir / "greeting.txt").exists()
        assert len(cache) == 0

    def test_broken_template_restores_last_good(
        self, templates_dir, greeting_unit, output_dir, source, cache, caplog
    ):
        unit = _only_unit(templates_dir)
        run_unit(unit, source, output_dir, cache)

        unit.template_path.write_text("Hello {{ name ")
        with caplog.at_level(logging.INFO):
            receipt = run_unit(unit, source, output_dir, cache)

        assert receipt.status == "restored"
        assert receipt.error
        assert (output_dir / "greeting.txt").read_text() == "Hello Ada\n"
        assert cache.get(unit.template_path) == "Hello Ada\n"
        assert "render failed" in caplog.text
        assert "restored last good output" in caplog.text

    def test_restore_overwrites_tampered_output(
        self, templates_dir, greeting_unit, output_dir, source, cache
    ):
        unit = _only_unit(templates_dir)
        run_unit(unit, source, output_dir, cache)
        (output_dir / "greeting.txt").write_text("half-writ")

        unit.template_path.write_text("Hello {{ nobody }}")
        run_unit(unit, source, output_dir, cache)

        assert (output_dir / "greeting.txt").read_text() == "Hello Ada\n"

    def test_format_failure_restores_last_good(self, templates_dir, make_unit, output_dir, source, cache):
        make_unit("api", '{"name": "{{ name }}"}', {"outputPath": "api.json", "data": {"name": "v1"}})
        unit = _only_unit(templates_dir)
        run_unit(unit, source, output_dir, cache)
        good = (output_dir / "api.json").read_text()

        unit.template_path.write_text('{"name": {{ name }}}')
        receipt = run_unit(unit, source, output_dir, cache)

        assert receipt.status == "restored"
        assert "Invalid JSON" in receipt.error
        assert (output_dir / "api.json").read_text() == good

    def test_format_failure_without_history(self, templates_dir, make_unit, output_dir, source, cache):
        make_unit("mod", "def broken(:\n", {"outputPath": "mod.py", "data": {}})
        receipt = run_unit(_only_unit(templates_dir), source, output_dir, cache)
        assert receipt.status == "untouched"
        assert not (output_dir / "mod.py").exists()

    def test_cache_not_updated_on_failure(self, templates_dir, greeting_unit, output_dir, source, cache):
        unit = _only_unit(templates_dir)
        run_unit(unit, source, output_dir, cache)
        unit.template_path.write_text("{% if %}")
        run_unit(unit, source, output_dir, cache)
        assert cache.get(unit.template_path) == "Hello Ada\n"

    def test_recovers_after_fix(self, templates_dir, greeting_unit, output_dir, source, cache):
        unit = _only_unit(templates_dir)
        run_unit(unit, source, output_dir, cache)
        unit.template_path.write_text("Hello {{ name ")
        run_unit(unit, source, output_dir, cache)

        unit.template_path.write_text("Goodbye {{ name }}\n")
        receipt = run_unit(unit, source, output_dir, cache)

        assert receipt.status == "written"
        assert (output_dir / "greeting.txt").read_text() == "Goodbye Ada\n"
        assert cache.get(unit.template_path) == "Goodbye Ada\n"

    def test_config_error_leaves_output_alone(self, templates_dir, greeting_unit, output_dir, source, cache):
        unit = _only_unit(templates_dir)
        run_unit(unit, source, output_dir, cache)
        (output_dir / "greeting.txt").write_text("edited by hand\n")

        unit.config_path.write_text("outputPath: [broken\n")
        receipt = run_unit(unit, source, output_dir, cache)

        assert receipt.status == "untouched"
        assert "Invalid YAML" in receipt.error
        assert (output_dir / "greeting.txt").read_text() == "edited by hand\n"
        assert cache.get(unit.template_path) == "Hello Ada\n"

    def test_missing_template_file(self, templates_dir, greeting_unit, output_dir, source, cache):
        unit = _only_unit(templates_dir)
        unit.template_path.unlink()
        receipt = run_unit(unit, source, output_dir, cache)
        assert receipt.status == "untouched"
        assert "Cannot read template" in receipt.error

    def test_write_error(self, templates_dir, make_unit, tmp_path, source, cache):
        make_unit("greeting", "hi", {"outputPath": "sub/greeting.txt", "data": {}})
        blocker = tmp_path / "blocker"
        blocker.write_text("a file, not a directory")

        receipt = run_unit(_only_unit(templates_dir), source, blocker, cache)

        assert receipt.status == "untouched"
        assert "Cannot write" in receipt.error
        assert len(cache) == 0

    def test_never_raises(self, templates_dir, greeting_unit, output_dir, cache):
        class ExplodingSource(YamlConfigSource):
            def load(self, path):
                from tplgen.core.errors import ConfigLoadError

                raise ConfigLoadError("boom")

        receipt = run_unit(_only_unit(templates_dir), ExplodingSource(), output_dir, cache)
        assert receipt.status == "untouched"
        assert receipt.error == "boom"

    def test_unexpected_config_error_leaves_output_alone(self, templates_dir, greeting_unit, output_dir, cache):
        class BrokenSource(YamlConfigSource):
            def load(self, path):
                raise RuntimeError("disk on fire")

        receipt = run_unit(_only_unit(templates_dir), BrokenSource(), output_dir, cache)
        assert receipt.status == "untouched"
        assert receipt.error == "RuntimeError: disk on fire"
        assert not output_dir.exists()


class TestParserLimits:
    """Input that overwhelms a parser fails like any other bad output."""

    DEEP_JSON = '{{ "[" * 100000 }}{{ "]" * 100000 }}'

    def test_deeply_nested_json_is_a_format_failure(self, templates_dir, make_unit, output_dir, source, cache):
        make_unit("deep", self.DEEP_JSON, {"outputPath": "deep.json", "data": {}})

        receipt = run_unit(_only_unit(templates_dir), source, output_dir, cache)

        assert receipt.status == "untouched"
        assert "Invalid JSON" in receipt.error
        assert not (output_dir / "deep.json").exists()

    def test_deep_unit_does_not_stop_the_others(self, templates_dir, make_unit, output_dir):
        from tplgen.core.use_cases.generate import generate_all

        make_unit("deep", self.DEEP_JSON, {"outputPath": "deep.json", "data": {}})
        make_unit("zz", "Hello {{ name }}\n", {"outputPath": "zz.txt", "data": {"name": "Ada"}})

        result = generate_all(templates_dir, output_dir)

        by_unit = {r.unit: r for r in result.receipts}
        assert by_unit["deep"].status == "untouched"
        assert by_unit["zz"].status == "written"
        assert (output_dir / "zz.txt").read_text() == "Hello Ada\n"

    def test_unexpected_formatter_error_restores_last_good(
        self, templates_dir, greeting_unit, output_dir, source, cache, monkeypatch, caplog
    ):
        unit = _only_unit(templates_dir)
        run_unit(unit, source, output_dir, cache)

        def exploding_formatter(text, output_path, options=None):
            raise RuntimeError("formatter crashed")

        monkeypatch.setattr("tplgen.core.services.pipeline.format_output", exploding_formatter)
        with caplog.at_level(logging.INFO):
            receipt = run_unit(unit, source, output_dir, cache)

        assert receipt.status == "restored"
        assert receipt.error == "RuntimeError: formatter crashed"
        assert (output_dir / "greeting.txt").read_text() == "Hello Ada\n"
        assert "generation failed" in caplog.text

    def test_unexpected_formatter_error_without_history(
        self, templates_dir, greeting_unit, output_dir, source, cache, monkeypatch
    ):
        def exploding_formatter(text, output_path, options=None):
            raise RecursionError("maximum recursion depth exceeded")

        monkeypatch.setattr("tplgen.core.services.pipeline.format_output", exploding_formatter)
        receipt = run_unit(_only_unit(templates_dir), source, output_dir, cache)

        assert receipt.status == "untouched"
        assert receipt.error.startswith("RecursionError")
        assert not (output_dir / "greeting.txt").exists()


class TestFormatterOptionsInPipeline:
    def test_options_shape_json_output(self, templates_dir, make_unit, output_dir, source, cache):
        from tplgen.core.config.formatter_options import FormatterOptions

        make_unit("api", '{"b": 1, "a": "é"}', {"outputPath": "api.json", "data": {}})
        options = FormatterOptions(json_indent=0, json_sort_keys=True, ensure_ascii=True)

        run_unit(_only_unit(templates_dir), source, output_dir, cache, options)

        assert (output_dir / "api.json").read_text() == '{\n"a": "\\u00e9",\n"b": 1\n}\n'
