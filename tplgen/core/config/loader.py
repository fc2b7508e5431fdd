"""
Unit config loader — reads ``config.yml`` into a ``UnitConfig``.

Configs are data, not code: YAML (or JSON, which YAML parses) validated
against the ``UnitConfig`` schema. The file is read fresh on every call
so watch mode picks up edits without a restart.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from pathlib import Path

import yaml
from pydantic import ValidationError

from tplgen.core.errors import ConfigLoadError
from tplgen.core.models.unit import UnitConfig

logger = logging.getLogger(__name__)

# Accepted config filenames, in lookup order
CONFIG_FILENAMES = ("config.yml", "config.yaml", "config.json")


class ConfigSource(ABC):
    """Anything that can turn a config path into a ``UnitConfig``."""

    @abstractmethod
    def load(self, path: Path) -> UnitConfig:
        """Load and validate the config at ``path``.

        Raises:
            ConfigLoadError: If the config is missing, unreadable or malformed.
        """


class YamlConfigSource(ConfigSource):
    """Reads unit configs from YAML/JSON files."""

    def load(self, path: Path) -> UnitConfig:
        try:
            raw = path.read_text(encoding="utf-8")
        except OSError as e:
            raise ConfigLoadError(f"Cannot read {path}: {e}") from e

        try:
            data = yaml.safe_load(raw)
        except yaml.YAMLError as e:
            raise ConfigLoadError(f"Invalid YAML in {path}: {e}") from e
        except (RecursionError, MemoryError, ValueError) as e:
            raise ConfigLoadError(f"Cannot parse {path}: {type(e).__name__}: {e}") from e

        return parse_unit_config(data, source=str(path))


def parse_unit_config(data: object, source: str = "<config>") -> UnitConfig:
    """Validate already-parsed config data.

    A top-level ``default`` key wins over the rest of the mapping, so
    both of these are equivalent::

        outputPath: greeting.txt        default:
        data: {name: Ada}                 outputPath: greeting.txt
                                          data: {name: Ada}
    """
    if not isinstance(data, dict):
        raise ConfigLoadError(
            f"Expected a mapping in {source}, got {type(data).__name__}"
        )

    config_data = data["default"] if "default" in data else data
    if not isinstance(config_data, dict):
        raise ConfigLoadError(
            f"Expected 'default' in {source} to be a mapping, "
            f"got {type(config_data).__name__}"
        )

    try:
        config = UnitConfig.model_validate(config_data)
    except ValidationError as e:
        raise ConfigLoadError(f"Invalid unit config in {source}: {e}") from e

    logger.debug("Loaded config %s → %s", source, config.output_path)
    return config


def find_config_file(unit_dir: Path) -> Path | None:
    """Return the first accepted config file in ``unit_dir``, or None."""
    for name in CONFIG_FILENAMES:
        candidate = unit_dir / name
        if candidate.is_file():
            return candidate
    return None
