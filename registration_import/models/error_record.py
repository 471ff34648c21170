from __future__ import annotations

import json
from dataclasses import asdict, dataclass
from datetime import UTC, datetime

"""One line of the import error log."""

__all__ = [
    "ErrorRecord",
    "FILE_LEVEL_ROW",
]

# row value for failures that concern the upload as a whole
FILE_LEVEL_ROW = -1


@dataclass(frozen=True)
class ErrorRecord:
    """A skipped row or a rejected upload.

    ``row`` is the 1-based worksheet row, or FILE_LEVEL_ROW. ``error_type``
    is a SkipReason value or DECODE_ERROR.
    """
    timestamp: str  # UTC, ISO 8601 with Z
    file: str
    sheet: str
    row: int
    error_type: str
    message: str

    @classmethod
    def create(
        cls,
        file: str,
        sheet: str,
        row: int,
        error_type: str,
        message: str,
        now: datetime | None = None,
    ) -> ErrorRecord:
        at = (now or datetime.now(UTC)).astimezone(UTC)
        return cls(at.isoformat().replace("+00:00", "Z"), file, sheet, row, error_type, message)

    def to_json_line(self) -> str:
        return json.dumps(asdict(self), ensure_ascii=False)
