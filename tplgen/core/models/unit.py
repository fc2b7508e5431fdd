"""
Unit models — what gets generated and with which data.

A ``GenerationUnit`` is discovered once from the template root.
A ``UnitConfig`` is loaded fresh from disk on every generation attempt.
"""

from __future__ import annotations

from pathlib import Path, PurePosixPath
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator


class GenerationUnit(BaseModel):
    """One template directory: ``<name>/<name>.j2`` plus its config.

    Attributes:
        name:          Directory basename, used as the unit identity in logs.
        template_path: Absolute path to the template file.
        config_path:   Absolute path to the config file.
    """

    model_config = ConfigDict(frozen=True)

    name: str
    template_path: Path
    config_path: Path

    @property
    def watched_paths(self) -> tuple[Path, Path]:
        """Paths whose changes should re-trigger generation."""
        return (self.template_path, self.config_path)


class UnitConfig(BaseModel):
    """Where a unit's output goes and what data it renders with."""

    model_config = ConfigDict(populate_by_name=True)

    output_path: str = Field(alias="outputPath")
    data: dict[str, Any]

    @field_validator("output_path")
    @classmethod
    def _relative_inside_root(cls, value: str) -> str:
        if not value or not value.strip():
            raise ValueError("outputPath must not be empty")
        pure = PurePosixPath(value.replace("\\", "/"))
        if pure.is_absolute() or Path(value).is_absolute():
            raise ValueError(f"outputPath must be relative, got {value!r}")
        if ".." in pure.parts:
            raise ValueError(f"outputPath must stay inside the output directory, got {value!r}")
        return value

    def resolve_output(self, output_root: Path) -> Path:
        """Join ``output_path`` onto the output root."""
        return output_root / self.output_path
