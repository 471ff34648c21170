from __future__ import annotations

from dataclasses import asdict, dataclass
from datetime import datetime
from typing import Any

"""Persisted entities: Registrant and RegistrationRecord.

Both are owned by the document store; the importer only reads and appends.
to_document() produces the flat mapping written to the store.
"""

__all__ = [
    "Registrant",
    "RegistrationRecord",
    "OPTIONAL_RECORD_FIELDS",
]

# RegistrationRecord fields stored as None (no value) instead of ""
OPTIONAL_RECORD_FIELDS: tuple[str, ...] = (
    "gender",
    "line_id",
    "housing_location",
    "age",
    "children_count",
    "sports_experience",
    "injury_history",
    "info_source",
    "suggestions",
)


@dataclass(frozen=True)
class Registrant:
    """A unique person, identified by (name, phone)."""
    name: str
    email: str
    phone: str
    gender: str
    age: str
    line_id: str
    resident_type: str  # ResidentStatus value
    created_at: datetime
    updated_at: datetime

    def to_document(self) -> dict[str, Any]:
        return asdict(self)


@dataclass(frozen=True)
class RegistrationRecord:
    """One accepted submission, identified by its content hash. Immutable."""
    registrant_id: str
    content_hash: str
    activity_name: str
    name: str
    resident_type: str
    email: str
    phone: str
    gender: str | None
    line_id: str | None
    housing_location: str | None
    age: str | None
    children_count: str | None
    sports_experience: str | None
    injury_history: str | None
    info_source: str | None
    suggestions: str | None
    submit_time: datetime
    created_at: datetime

    def to_document(self) -> dict[str, Any]:
        return asdict(self)
