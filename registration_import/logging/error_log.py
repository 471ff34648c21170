from __future__ import annotations

from datetime import UTC, datetime
from pathlib import Path

from ..models.error_record import ErrorRecord

"""Per-import error log.

Rows that end up skipped, and undecodable uploads, are collected as
ErrorRecords while the import runs and written once at the end as JSON Lines
to ``logs/errors-YYYYMMDD-HHMMSS.log``. The stamp is the UTC time the buffer
was created, so one import maps to one file. Nothing is created for a clean
import.
"""

__all__ = [
    "ErrorRecord",
    "ErrorLogBuffer",
]

DEFAULT_LOGS_DIR = Path("logs")


class ErrorLogBuffer:
    """Collects ErrorRecords for one import; not thread safe."""

    def __init__(self, logs_dir: Path | None = None, started_at: datetime | None = None) -> None:
        started = started_at if started_at is not None else datetime.now(UTC)
        directory = logs_dir if logs_dir is not None else DEFAULT_LOGS_DIR
        self.file_path = directory / f"errors-{started.strftime('%Y%m%d-%H%M%S')}.log"
        self._pending: list[ErrorRecord] = []

    @property
    def records(self) -> list[ErrorRecord]:
        """Records not yet flushed."""
        return list(self._pending)

    def append(self, record: ErrorRecord) -> None:
        self._pending.append(record)

    def flush(self) -> Path | None:
        """Append pending records to the log file; None if there were none."""
        if not self._pending:
            return None
        self.file_path.parent.mkdir(parents=True, exist_ok=True)
        lines = "".join(f"{record.to_json_line()}\n" for record in self._pending)
        with self.file_path.open("a", encoding="utf-8") as fh:
            fh.write(lines)
        self._pending = []
        return self.file_path
