"""
Error taxonomy for generation.

Every per-unit failure is one of these. The pipeline catches them and
turns them into receipts; only ``DiscoveryError`` is allowed to reach
the process boundary.
"""

from __future__ import annotations


class GenerationError(Exception):
    """Base class for all generation failures."""


class DiscoveryError(GenerationError):
    """Raised when the template root itself cannot be listed."""


class ConfigLoadError(GenerationError):
    """Raised when a unit config is unreadable or malformed."""


class RenderError(GenerationError):
    """Raised when a template fails to render."""


class FormatError(GenerationError):
    """Raised when the formatter rejects rendered output."""


class WriteError(GenerationError):
    """Raised when output cannot be written to disk."""
