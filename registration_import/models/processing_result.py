from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any

"""Processing result models for the registration spreadsheet importer.

RowOutcome is the per-row discriminated result (processed / skipped / duplicate)
and ImportReport is the aggregate handed back to the caller.
"""

__all__ = [
    "OutcomeKind",
    "SkipReason",
    "RowOutcome",
    "ImportReport",
]


class OutcomeKind(Enum):
    """Terminal state of one row: decoded -> normalized -> (rejected | resolved) -> (duplicate | written)."""
    PROCESSED = "processed"
    SKIPPED = "skipped"
    DUPLICATE = "duplicate"


class SkipReason(Enum):
    INCOMPLETE_ROW = "INCOMPLETE_ROW"  # completeness gate rejection
    ROW_ERROR = "ROW_ERROR"  # exception while resolving / writing


@dataclass(frozen=True)
class RowOutcome:
    kind: OutcomeKind
    row_number: int
    reason: SkipReason | None = None
    registrant_id: str | None = None
    detail: str | None = None

    @classmethod
    def processed(cls, row_number: int, registrant_id: str) -> RowOutcome:
        return cls(OutcomeKind.PROCESSED, row_number, registrant_id=registrant_id)

    @classmethod
    def duplicate(cls, row_number: int, registrant_id: str) -> RowOutcome:
        return cls(OutcomeKind.DUPLICATE, row_number, registrant_id=registrant_id)

    @classmethod
    def skipped(cls, row_number: int, reason: SkipReason, detail: str | None = None) -> RowOutcome:
        return cls(OutcomeKind.SKIPPED, row_number, reason=reason, detail=detail)


@dataclass(frozen=True)
class ImportReport:
    """Aggregate result of one upload.

    processed_count + skipped_count + duplicate_count equals the number of
    decoded rows. success is False only when the payload could not be decoded.
    """
    success: bool
    message: str
    processed_count: int = 0
    skipped_count: int = 0
    duplicate_count: int = 0

    @property
    def total_rows(self) -> int:
        return self.processed_count + self.skipped_count + self.duplicate_count

    def to_dict(self) -> dict[str, Any]:
        """Serialize with the camelCase keys the upload client expects."""
        return {
            "success": self.success,
            "message": self.message,
            "processedCount": self.processed_count,
            "skippedCount": self.skipped_count,
            "duplicateCount": self.duplicate_count,
        }
