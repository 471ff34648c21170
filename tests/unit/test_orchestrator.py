from __future__ import annotations

import base64
import io
import json
from dataclasses import replace
from unittest.mock import patch

import pandas as pd
import pytest

from registration_import.db.document_store import InMemoryDocumentStore, StoreError
from registration_import.logging import init as log_init
from registration_import.logging.error_log import ErrorLogBuffer
from registration_import.models.processing_result import OutcomeKind, SkipReason
from registration_import.models.row_data import SpreadsheetRow
from registration_import.services.aggregator import DECODE_FAILURE_MESSAGE, MISSING_PAYLOAD_MESSAGE
from registration_import.services.orchestrator import (
    import_base64,
    import_rows,
    import_workbook,
    process_row,
)


def _row(make_row, row_number=2, **overrides) -> SpreadsheetRow:
    return SpreadsheetRow(row_number=row_number, values=make_row(**overrides))


@pytest.fixture()
def log_output():
    """Application log lines written during the test."""
    log_init.reset_logging()
    out = io.StringIO()
    log_init.setup_logging(stream=out)
    yield out
    log_init.reset_logging()


class FlakyStore(InMemoryDocumentStore):
    """Fails every insert into one collection after the first N."""

    def __init__(self, collection: str, allowed: int) -> None:
        super().__init__()
        self.collection = collection
        self.allowed = allowed

    def insert(self, collection, document):
        if collection == self.collection:
            if self.allowed <= 0:
                raise StoreError(f"insert on {collection} failed: quota exceeded")
            self.allowed -= 1
        return super().insert(collection, document)


class TestProcessRow:
    def test_new_row_is_processed(self, make_row, store, config, fixed_clock):
        outcome = process_row(_row(make_row), store, config, fixed_clock)
        assert outcome.kind is OutcomeKind.PROCESSED
        assert outcome.registrant_id is not None
        assert store.count("registrants") == 1
        assert store.count("registration_history") == 1

    def test_incomplete_row_causes_no_writes(self, make_row, store, config, fixed_clock):
        outcome = process_row(_row(make_row, phone=None, email=""), store, config, fixed_clock)
        assert outcome.kind is OutcomeKind.SKIPPED
        assert outcome.reason is SkipReason.INCOMPLETE_ROW
        assert outcome.detail == "missing fields: email, phone"
        assert store.count("registrants") == 0
        assert store.count("registration_history") == 0

    def test_seen_hash_is_duplicate(self, make_row, store, config, fixed_clock):
        first = process_row(_row(make_row), store, config, fixed_clock)
        again = process_row(_row(make_row, row_number=3), store, config, fixed_clock)
        assert again.kind is OutcomeKind.DUPLICATE
        assert again.registrant_id == first.registrant_id
        assert store.count("registration_history") == 1

    def test_duplicate_of_unknown_person_still_creates_registrant(self, make_row, store, config, fixed_clock):
        """The registrant is resolved before the duplicate check."""
        store.insert("registration_history", {"content_hash": "a1b2c3d4", "registrant_id": "legacy"})
        outcome = process_row(_row(make_row), store, config, fixed_clock)
        assert outcome.kind is OutcomeKind.DUPLICATE
        assert store.count("registrants") == 1
        assert store.count("registration_history") == 1

    def test_record_uses_clock(self, make_row, store, config, fixed_clock, fixed_now):
        process_row(_row(make_row, submit_time="not a time"), store, config, fixed_clock)
        [(_, record)] = store.find("registration_history")
        assert record["submit_time"] == fixed_now
        assert record["created_at"] == fixed_now


class TestImportRows:
    def test_store_failure_skips_row_and_continues(self, make_row, config, fixed_clock):
        store = FlakyStore("registration_history", allowed=1)
        rows = [
            _row(make_row, 2, content_hash="h1"),
            _row(make_row, 3, content_hash="h2"),
            _row(make_row, 4, content_hash="h3", phone=None),
        ]
        error_log = ErrorLogBuffer()
        report = import_rows(rows, store, config, file_name="f.xlsx", sheet_name="S", error_log=error_log, clock=fixed_clock)

        assert report.success is True
        assert (report.processed_count, report.skipped_count, report.duplicate_count) == (1, 2, 0)
        # the registrant written before the failure stays
        assert store.count("registrants") == 1
        assert store.count("registration_history") == 1

        records = error_log.records
        assert [(r.row, r.error_type) for r in records] == [(3, "ROW_ERROR"), (4, "INCOMPLETE_ROW")]
        assert "quota exceeded" in records[0].message
        assert records[1].message == "missing fields: phone"
        assert {(r.file, r.sheet) for r in records} == {("f.xlsx", "S")}

    def test_unexpected_exception_is_contained(self, make_row, store, config, fixed_clock):
        with patch(
            "registration_import.services.orchestrator.write_registration",
            side_effect=[RuntimeError("boom"), "doc-2"],
        ):
            report = import_rows(
                [_row(make_row, 2, content_hash="h1"), _row(make_row, 3, content_hash="h2")],
                store,
                config,
                clock=fixed_clock,
            )
        assert (report.processed_count, report.skipped_count) == (1, 1)

    def test_counters_conserve_rows(self, make_row, store, config, fixed_clock):
        rows = [
            _row(make_row, 2, content_hash="h1"),
            _row(make_row, 3, content_hash="h1"),
            _row(make_row, 4, content_hash="h2", name=""),
            _row(make_row, 5, content_hash="h3", name="林志明", phone="0922000111"),
        ]
        report = import_rows(rows, store, config, clock=fixed_clock)
        assert report.total_rows == len(rows)
        assert (report.processed_count, report.skipped_count, report.duplicate_count) == (2, 1, 1)

    def test_skip_reasons_logged_at_debug(self, make_row, store, config, fixed_clock, log_output):
        log_init.set_debug(True)
        with patch(
            "registration_import.services.orchestrator.write_registration",
            side_effect=RuntimeError("boom"),
        ):
            import_rows(
                [_row(make_row, 2, content_hash="h1"), _row(make_row, 3, content_hash="h2", email=None)],
                store,
                config,
                clock=fixed_clock,
            )
        assert "DEBUG skipped by reason: INCOMPLETE_ROW=1, ROW_ERROR=1" in log_output.getvalue()

    def test_no_rows(self, store, config):
        report = import_rows([], store, config)
        assert report.success is True
        assert report.total_rows == 0


class TestImportWorkbook:
    def test_decode_failure_fails_whole_import(self, store, config, tmp_path):
        report = import_workbook(b"not a workbook", store, config, "bad.xlsx", logs_dir=tmp_path)
        assert report.success is False
        assert report.message == DECODE_FAILURE_MESSAGE
        assert report.total_rows == 0
        [log_file] = tmp_path.glob("errors-*.log")
        assert '"row": -1' in log_file.read_text(encoding="utf-8")
        assert '"DECODE_ERROR"' in log_file.read_text(encoding="utf-8")

    def test_error_log_written_only_for_skips(self, make_row, make_workbook, store, config, fixed_clock, tmp_path):
        clean = make_workbook([make_row()])
        import_workbook(clean, store, config, "ok.xlsx", logs_dir=tmp_path, clock=fixed_clock)
        assert list(tmp_path.glob("errors-*.log")) == []

        bad = make_workbook([make_row(content_hash="h9", phone=None)])
        report = import_workbook(bad, store, config, "bad.xlsx", logs_dir=tmp_path, clock=fixed_clock)
        assert report.skipped_count == 1
        assert len(list(tmp_path.glob("errors-*.log"))) == 1

    def test_custom_header_row(self, make_row, store, config, fixed_clock, tmp_path):
        frame = pd.DataFrame([list(make_row().keys()), list(make_row().values())])
        banner = pd.DataFrame([["興隆社宅活動報名"] + [None] * (frame.shape[1] - 1)])
        buf = io.BytesIO()
        pd.concat([banner, frame]).to_excel(buf, index=False, header=False, engine="openpyxl")

        report = import_workbook(
            buf.getvalue(), store, replace(config, header_row=1), "f.xlsx", logs_dir=tmp_path, clock=fixed_clock
        )
        assert report.processed_count == 1


class TestImportBase64:
    def test_missing_payload(self, store, config):
        for empty in (None, ""):
            report = import_base64(empty, store, config)
            assert report.success is False
            assert report.message == MISSING_PAYLOAD_MESSAGE

    def test_invalid_base64(self, store, config, tmp_path, log_output):
        report = import_base64("@@@ not base64 @@@", store, config, "form.xlsx", logs_dir=tmp_path)
        assert report.success is False
        assert report.message == DECODE_FAILURE_MESSAGE
        assert "INFO Processing Excel file: form.xlsx" in log_output.getvalue()
        [log_file] = tmp_path.glob("errors-*.log")
        [entry] = [json.loads(line) for line in log_file.read_text(encoding="utf-8").splitlines()]
        assert (entry["file"], entry["row"], entry["error_type"]) == ("form.xlsx", -1, "DECODE_ERROR")

    @pytest.mark.parametrize(
        "encode",
        [
            lambda raw: base64.b64encode(raw).decode("ascii").rstrip("="),
            lambda raw: base64.urlsafe_b64encode(raw).decode("ascii"),
        ],
        ids=["unpadded", "urlsafe"],
    )
    def test_lenient_base64_variants_import(self, encode, make_row, make_workbook, store, config, fixed_clock, tmp_path):
        text = encode(make_workbook([make_row()]))
        report = import_base64(text, store, config, "form.xlsx", logs_dir=tmp_path, clock=fixed_clock)
        assert report.success is True
        assert report.processed_count == 1

    def test_valid_payload(self, make_row, make_workbook, store, config, fixed_clock, tmp_path):
        text = base64.b64encode(make_workbook([make_row()])).decode("ascii")
        report = import_base64(text, store, config, "form.xlsx", logs_dir=tmp_path, clock=fixed_clock)
        assert report.success is True
        assert report.processed_count == 1
