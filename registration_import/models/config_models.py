from __future__ import annotations

from dataclasses import dataclass, field

"""Config dataclasses for the registration spreadsheet importer.

The column schema is an ordered list of ColumnSpec entries. The same table
drives normalization (header text -> field) and the completeness check
(required flag), so a different form export only needs a different table.
"""

__all__ = [
    "ColumnSpec",
    "DatabaseConfig",
    "ImportConfig",
    "DEFAULT_COLUMNS",
    "DEFAULT_RESIDENT_STATUS_VOCABULARY",
    "SUBMIT_TIME_FIELD",
    "RESIDENT_STATUS_FIELD",
]

SUBMIT_TIME_FIELD = "submit_time"
RESIDENT_STATUS_FIELD = "resident_status"


@dataclass(frozen=True)
class ColumnSpec:
    """One recognized column of the form export."""
    header: str  # exact header text in the form language
    field: str  # NormalizedRow attribute name
    required: bool = True


# SurveyCake export of the Xinglong social housing activity form
DEFAULT_COLUMNS: tuple[ColumnSpec, ...] = (
    ColumnSpec("以下活動請擇一", "activity_name"),
    ColumnSpec("姓名", "name"),
    ColumnSpec("電子郵件", "email"),
    ColumnSpec("Hash", "content_hash"),
    ColumnSpec("聯絡電話", "phone"),
    ColumnSpec("性別", "gender"),
    ColumnSpec("參與者年齡", "age"),
    ColumnSpec("Line ID（意者可留）", "line_id"),
    ColumnSpec("小孩人數", "children_count"),
    ColumnSpec("請問您是興隆社宅2區的住戶嗎？", RESIDENT_STATUS_FIELD),
    ColumnSpec("您是來自哪個臺北市社會住宅？", "housing_location"),
    ColumnSpec("運動經歷幾年？", "sports_experience"),
    ColumnSpec("是否有受傷病史？（沒有請填無）", "injury_history"),
    ColumnSpec("請問您從何處得知本次活動資訊？", "info_source"),
    ColumnSpec(
        "針對活動，有什麼建議或想和主辦單位說的話嗎？請在這裡留言喔～謝謝您！",
        "suggestions",
    ),
    ColumnSpec("填答時間", SUBMIT_TIME_FIELD, required=False),
)

# Exact answer phrase -> ResidentStatus value
DEFAULT_RESIDENT_STATUS_VOCABULARY: dict[str, str] = {
    "是": "xinglongd2",
    "否，我是文山區鄰近居民": "wenshan",
    "否，我是其他臺北市社會住宅的住戶": "otherTaipeiSocialHousing",
    "以上皆非": "other",
}


@dataclass(frozen=True)
class DatabaseConfig:
    """Database connection configuration.

    Used as fallback when environment variables are not set.
    Environment variables take precedence over these values.
    """
    host: str | None = None
    port: int | None = None
    user: str | None = None
    password: str | None = None
    database: str | None = None
    dsn: str | None = None


@dataclass(frozen=True)
class ImportConfig:
    """Root configuration object for one import run."""
    columns: tuple[ColumnSpec, ...] = DEFAULT_COLUMNS
    resident_status_vocabulary: dict[str, str] = field(
        default_factory=lambda: dict(DEFAULT_RESIDENT_STATUS_VOCABULARY)
    )
    timezone: str = "UTC"  # applied to naive submission times
    header_row: int = 0  # 0-based worksheet row holding the headers
    registrants_collection: str = "registrants"
    registrations_collection: str = "registration_history"
    database: DatabaseConfig = field(default_factory=DatabaseConfig)

    @property
    def required_fields(self) -> tuple[str, ...]:
        return tuple(c.field for c in self.columns if c.required)

    @property
    def expected_headers(self) -> set[str]:
        return {c.header for c in self.columns}
