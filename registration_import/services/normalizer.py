from __future__ import annotations

from datetime import UTC, date, datetime, time
from typing import Any
from zoneinfo import ZoneInfo

import pandas as pd

from ..models.config_models import RESIDENT_STATUS_FIELD, SUBMIT_TIME_FIELD, ImportConfig
from ..models.resident_status import ResidentStatus
from ..models.row_data import NormalizedRow, SpreadsheetRow

"""Row normalization.

Maps a SpreadsheetRow onto the fixed NormalizedRow field set using the column
schema from ImportConfig. Normalization never fails: missing cells become "",
unknown resident-status answers become ResidentStatus.OTHER and an empty or
unparseable submission time becomes the current time.
"""

__all__ = [
    "cell_to_text",
    "parse_submit_time",
    "normalize_row",
]


def cell_to_text(value: Any) -> str:
    """Coerce a raw cell value to text ("" when absent)."""
    if value is None:
        return ""
    if isinstance(value, float):
        if pd.isna(value):
            return ""
        # Excel stores every number as float: 912345678.0 -> "912345678"
        if value.is_integer():
            return str(int(value))
        return str(value)
    if isinstance(value, datetime):
        return value.isoformat()
    if isinstance(value, date):
        return value.isoformat()
    return str(value).strip()


def _localize(value: datetime, tz: ZoneInfo) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=tz)
    return value


def parse_submit_time(value: Any, tz: ZoneInfo, now: datetime | None = None) -> datetime:
    """Interpret a submission-time cell, falling back to ``now``."""
    fallback = now if now is not None else datetime.now(UTC)
    if value is None:
        return fallback
    if isinstance(value, datetime):
        return _localize(value, tz)
    if isinstance(value, date):
        return datetime.combine(value, time.min, tzinfo=tz)
    text = cell_to_text(value)
    # pandas reads "now"/"today" as naive local time; a real answer has digits
    if not any(ch.isdigit() for ch in text):
        return fallback
    try:
        parsed = pd.to_datetime(text, errors="coerce")
    except (ValueError, TypeError, OverflowError):
        return fallback
    if parsed is None or pd.isna(parsed):
        return fallback
    return _localize(parsed.to_pydatetime(), tz)


def normalize_row(
    row: SpreadsheetRow, config: ImportConfig, now: datetime | None = None
) -> NormalizedRow:
    """Build the NormalizedRow for one decoded row."""
    tz = ZoneInfo(config.timezone)
    fields: dict[str, Any] = {
        c.field: cell_to_text(row.values.get(c.header))
        for c in config.columns
        if c.field not in (SUBMIT_TIME_FIELD, RESIDENT_STATUS_FIELD)
    }

    status_text = ""
    submit_raw: Any = None
    for column in config.columns:
        if column.field == RESIDENT_STATUS_FIELD:
            status_text = cell_to_text(row.values.get(column.header))
        elif column.field == SUBMIT_TIME_FIELD:
            submit_raw = row.values.get(column.header)

    return NormalizedRow(
        activity_name=fields.get("activity_name", ""),
        name=fields.get("name", ""),
        email=fields.get("email", ""),
        content_hash=fields.get("content_hash", ""),
        phone=fields.get("phone", ""),
        gender=fields.get("gender", ""),
        age=fields.get("age", ""),
        line_id=fields.get("line_id", ""),
        children_count=fields.get("children_count", ""),
        resident_status=ResidentStatus.from_text(
            status_text, config.resident_status_vocabulary
        ),
        housing_location=fields.get("housing_location", ""),
        sports_experience=fields.get("sports_experience", ""),
        injury_history=fields.get("injury_history", ""),
        info_source=fields.get("info_source", ""),
        suggestions=fields.get("suggestions", ""),
        submit_time=parse_submit_time(submit_raw, tz, now),
        row_number=row.row_number,
    )
