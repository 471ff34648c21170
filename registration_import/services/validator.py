from __future__ import annotations

from ..models.config_models import ImportConfig
from ..models.row_data import NormalizedRow

"""Completeness gate.

Every column flagged ``required`` in the schema must be non-empty after
normalization; a row missing any of them is skipped as a whole and causes no
store writes.
"""

__all__ = [
    "missing_fields",
    "is_complete",
]


def missing_fields(row: NormalizedRow, config: ImportConfig) -> list[str]:
    """Required fields that are empty, in schema order."""
    return [f for f in config.required_fields if not row.value_of(f)]


def is_complete(row: NormalizedRow, config: ImportConfig) -> bool:
    return not missing_fields(row, config)
