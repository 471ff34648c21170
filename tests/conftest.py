# Shared pytest fixtures
from __future__ import annotations

from collections.abc import Callable
from datetime import UTC, datetime
from io import BytesIO
from pathlib import Path
from typing import Any

import pandas as pd
import pytest

from registration_import.db.document_store import InMemoryDocumentStore
from registration_import.models.config_models import DEFAULT_COLUMNS, ImportConfig

FIXED_NOW = datetime(2025, 4, 1, 9, 30, 0, tzinfo=UTC)

HEADERS = {c.field: c.header for c in DEFAULT_COLUMNS}


@pytest.fixture()
def temp_workdir(monkeypatch, tmp_path: Path) -> Path:
    (tmp_path / "config").mkdir()
    (tmp_path / "logs").mkdir()
    monkeypatch.chdir(tmp_path)
    return tmp_path


@pytest.fixture()
def config() -> ImportConfig:
    return ImportConfig()


@pytest.fixture()
def store() -> InMemoryDocumentStore:
    return InMemoryDocumentStore()


@pytest.fixture()
def fixed_clock() -> Callable[[], datetime]:
    return lambda: FIXED_NOW


@pytest.fixture()
def make_row() -> Callable[..., dict[str, Any]]:
    """Complete form answer keyed by header text; override by field name."""
    def _make(**overrides: Any) -> dict[str, Any]:
        values: dict[str, Any] = {
            "activity_name": "親子瑜珈",
            "name": "陳怡君",
            "email": "yijun@example.com",
            "content_hash": "a1b2c3d4",
            "phone": "0912345678",
            "gender": "女",
            "age": "34",
            "line_id": "yijun_chen",
            "children_count": "2",
            "resident_status": "是",
            "housing_location": "興隆社宅2區",
            "sports_experience": "3 年",
            "injury_history": "無",
            "info_source": "社區公告",
            "suggestions": "謝謝主辦單位",
            "submit_time": "2025-03-02 14:05:00",
        }
        values.update(overrides)
        return {HEADERS[k]: v for k, v in values.items()}
    return _make


@pytest.fixture()
def make_workbook() -> Callable[[list[dict[str, Any]]], bytes]:
    """Write rows (header text -> value) as an xlsx payload."""
    def _make(rows: list[dict[str, Any]], columns: list[str] | None = None) -> bytes:
        if columns is None:
            columns = [c.header for c in DEFAULT_COLUMNS]
        buf = BytesIO()
        pd.DataFrame(rows, columns=columns).to_excel(buf, index=False, engine="openpyxl")
        return buf.getvalue()
    return _make


@pytest.fixture()
def fixed_now() -> datetime:
    return FIXED_NOW
