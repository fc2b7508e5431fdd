"""
Generation receipt — the outcome of one pipeline run.

The pipeline NEVER raises; every attempt ends in exactly one of three
terminal actions, recorded here:

    written    new output formatted and written
    restored   attempt failed, last-good output rewritten
    untouched  attempt failed, nothing written
"""

from __future__ import annotations

from datetime import UTC, datetime
from typing import Any, Literal

from pydantic import BaseModel, Field


def _now_iso() -> str:
    """Current UTC time as ISO string."""
    return datetime.now(UTC).isoformat()


class GenerationReceipt(BaseModel):
    """Result of generating one unit."""

    unit: str
    status: Literal["written", "restored", "untouched"] = "written"
    output_path: str | None = None

    started_at: str = Field(default_factory=_now_iso)
    ended_at: str = Field(default_factory=_now_iso)
    duration_ms: int = 0

    error: str | None = None

    @property
    def ok(self) -> bool:
        """Whether fresh output was written."""
        return self.status == "written"

    @property
    def restored(self) -> bool:
        """Whether last-good output was put back after a failure."""
        return self.status == "restored"

    @property
    def failed(self) -> bool:
        """Whether the attempt failed (restored or not)."""
        return self.error is not None

    @classmethod
    def written(cls, unit: str, output_path: str, **kwargs: Any) -> GenerationReceipt:
        """Create a receipt for freshly written output."""
        return cls(unit=unit, status="written", output_path=output_path, **kwargs)

    @classmethod
    def restore(
        cls,
        unit: str,
        output_path: str,
        error: str,
        **kwargs: Any,
    ) -> GenerationReceipt:
        """Create a receipt for a failed attempt that restored last-good output."""
        return cls(unit=unit, status="restored", output_path=output_path, error=error, **kwargs)

    @classmethod
    def untouched(
        cls,
        unit: str,
        error: str,
        output_path: str | None = None,
        **kwargs: Any,
    ) -> GenerationReceipt:
        """Create a receipt for a failed attempt that left the filesystem alone."""
        return cls(unit=unit, status="untouched", output_path=output_path, error=error, **kwargs)
