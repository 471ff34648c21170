from __future__ import annotations

import pytest

from registration_import.models.config_models import ColumnSpec, ImportConfig
from registration_import.models.row_data import SpreadsheetRow
from registration_import.services.normalizer import normalize_row
from registration_import.services.validator import is_complete, missing_fields

REQUIRED = [
    "activity_name",
    "name",
    "email",
    "content_hash",
    "phone",
    "gender",
    "age",
    "line_id",
    "children_count",
    "housing_location",
    "sports_experience",
    "injury_history",
    "info_source",
    "suggestions",
]


def _normalized(make_row, config, fixed_now, **overrides):
    return normalize_row(SpreadsheetRow(row_number=2, values=make_row(**overrides)), config, now=fixed_now)


def test_complete_row_passes(make_row, config, fixed_now):
    row = _normalized(make_row, config, fixed_now)
    assert missing_fields(row, config) == []
    assert is_complete(row, config)


@pytest.mark.parametrize("field", REQUIRED)
def test_any_empty_required_field_rejects(field, make_row, config, fixed_now):
    row = _normalized(make_row, config, fixed_now, **{field: None})
    assert missing_fields(row, config) == [field]
    assert not is_complete(row, config)


def test_whitespace_only_counts_as_empty(make_row, config, fixed_now):
    row = _normalized(make_row, config, fixed_now, phone="   ")
    assert missing_fields(row, config) == ["phone"]


def test_submit_time_is_not_required(make_row, config, fixed_now):
    row = _normalized(make_row, config, fixed_now, submit_time=None)
    assert is_complete(row, config)


def test_resident_status_always_has_a_category(make_row, config, fixed_now):
    # unknown and blank answers normalize to "other", which is a value
    row = _normalized(make_row, config, fixed_now, resident_status=None)
    assert "resident_status" not in missing_fields(row, config)


def test_missing_fields_in_schema_order(make_row, config, fixed_now):
    row = _normalized(make_row, config, fixed_now, suggestions="", email="", name="")
    assert missing_fields(row, config) == ["name", "email", "suggestions"]


def test_optional_column_in_custom_schema(make_row, fixed_now):
    config = ImportConfig(
        columns=(
            ColumnSpec("姓名", "name"),
            ColumnSpec("聯絡電話", "phone"),
            ColumnSpec("Hash", "content_hash"),
            ColumnSpec("Line ID（意者可留）", "line_id", required=False),
        )
    )
    row = _normalized(make_row, config, fixed_now, line_id=None)
    assert is_complete(row, config)
