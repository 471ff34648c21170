from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Any

from .resident_status import ResidentStatus

"""Row models for the registration spreadsheet importer.

SpreadsheetRow is what the decoder yields (header text -> raw cell value);
NormalizedRow is the fixed, typed field set the rest of the pipeline works on.
Neither is persisted.
"""

__all__ = [
    "SpreadsheetRow",
    "NormalizedRow",
]


@dataclass(frozen=True)
class SpreadsheetRow:
    """Single data row of the first worksheet, keyed by original header text."""
    row_number: int  # 1-based worksheet row number (header row excluded)
    values: dict[str, Any]  # header -> str | int | float | datetime | None


@dataclass(frozen=True)
class NormalizedRow:
    activity_name: str
    name: str
    email: str
    content_hash: str  # SurveyCake submission hash
    phone: str
    gender: str
    age: str
    line_id: str
    children_count: str
    resident_status: ResidentStatus
    housing_location: str
    sports_experience: str
    injury_history: str
    info_source: str
    suggestions: str
    submit_time: datetime
    row_number: int = -1

    def value_of(self, field_name: str) -> str:
        """Return a field as text, enum fields by their value."""
        value = getattr(self, field_name)
        if isinstance(value, ResidentStatus):
            return value.value
        if isinstance(value, datetime):
            return value.isoformat()
        return value
