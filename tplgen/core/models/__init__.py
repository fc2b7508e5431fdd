"""
Domain models — Pydantic types for units, configs and receipts.

    from tplgen.core.models import GenerationUnit, UnitConfig, GenerationReceipt
"""

from tplgen.core.models.receipt import GenerationReceipt
from tplgen.core.models.unit import GenerationUnit, UnitConfig

__all__ = [
    "GenerationReceipt",
    "GenerationUnit",
    "UnitConfig",
]
