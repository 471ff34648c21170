from __future__ import annotations

import logging
from collections.abc import Callable
from datetime import UTC, datetime
from pathlib import Path

from ..db.document_store import DocumentStore
from ..excel.reader import DecodeError, decode_base64_payload, read_workbook
from ..logging.error_log import ErrorLogBuffer, ErrorRecord
from ..models.config_models import ImportConfig
from ..models.error_record import FILE_LEVEL_ROW
from ..models.processing_result import ImportReport, RowOutcome, SkipReason
from ..models.row_data import SpreadsheetRow
from .aggregator import (
    MISSING_PAYLOAD_MESSAGE,
    ImportAggregator,
    failure_report,
)
from .normalizer import normalize_row
from .progress import RowProgress
from .resolver import is_duplicate, resolve_or_create_registrant
from .validator import missing_fields
from .writer import write_registration

"""Import orchestration.

Per row: normalize -> validate (gate) -> resolve registrant -> detect
duplicate (gate) -> write. Rows run strictly in sheet order and each store
call completes before the next one starts. An exception inside a row is
caught at the row boundary and counted as skipped; only an undecodable
payload fails the whole import. Nothing already written is rolled back.
"""

__all__ = [
    "process_row",
    "import_rows",
    "import_workbook",
    "import_base64",
]

logger = logging.getLogger(__name__)

Clock = Callable[[], datetime]


def _utcnow() -> datetime:
    return datetime.now(UTC)


def process_row(
    row: SpreadsheetRow,
    store: DocumentStore,
    config: ImportConfig,
    clock: Clock = _utcnow,
) -> RowOutcome:
    """Run one row through the pipeline. Store errors propagate to the caller."""
    now = clock()
    normalized = normalize_row(row, config, now=now)

    missing = missing_fields(normalized, config)
    if missing:
        return RowOutcome.skipped(
            row.row_number,
            SkipReason.INCOMPLETE_ROW,
            detail=f"missing fields: {', '.join(missing)}",
        )

    resolution = resolve_or_create_registrant(store, normalized, config, now)

    if is_duplicate(store, normalized.content_hash, config):
        return RowOutcome.duplicate(row.row_number, resolution.registrant_id)

    write_registration(store, normalized, resolution.registrant_id, config, now)
    return RowOutcome.processed(row.row_number, resolution.registrant_id)


def import_rows(
    rows: list[SpreadsheetRow],
    store: DocumentStore,
    config: ImportConfig,
    *,
    file_name: str = "unknown",
    sheet_name: str = "",
    error_log: ErrorLogBuffer | None = None,
    clock: Clock = _utcnow,
) -> ImportReport:
    """Reconcile decoded rows against the store and aggregate the outcomes."""
    aggregator = ImportAggregator()

    with RowProgress(len(rows)) as progress:
        for row in rows:
            try:
                outcome = process_row(row, store, config, clock)
            except Exception as e:
                logger.error(f"row {row.row_number}: failed to import: {e}", exc_info=True)
                outcome = RowOutcome.skipped(row.row_number, SkipReason.ROW_ERROR, detail=str(e))

            if outcome.reason is SkipReason.INCOMPLETE_ROW:
                logger.debug(f"row {row.row_number}: skipped, {outcome.detail}")

            if outcome.reason is not None and error_log is not None:
                error_log.append(
                    ErrorRecord.create(
                        file=file_name,
                        sheet=sheet_name,
                        row=row.row_number,
                        error_type=outcome.reason.value,
                        message=outcome.detail or "",
                    )
                )

            aggregator.add(outcome)
            progress.advance(
                processed=aggregator.processed,
                skipped=aggregator.skipped,
                duplicate=aggregator.duplicate,
            )

    by_reason = aggregator.skipped_by_reason()
    if by_reason:
        counts = sorted(f"{reason.value}={count}" for reason, count in by_reason.items())
        logger.debug(f"skipped by reason: {', '.join(counts)}")
    return aggregator.build_report()


def import_workbook(
    payload: bytes,
    store: DocumentStore,
    config: ImportConfig,
    file_name: str | None = None,
    *,
    logs_dir: Path | None = None,
    clock: Clock = _utcnow,
) -> ImportReport:
    """Import one uploaded workbook. Always returns a report."""
    display_name = file_name or "unknown"
    logger.info(f"Processing Excel file: {display_name}")

    try:
        sheet = read_workbook(payload, header_row=config.header_row)
    except DecodeError as e:
        return _decode_failure(display_name, e, logs_dir)

    error_log = ErrorLogBuffer(logs_dir)

    logger.debug(f"sheet={sheet.sheet_name} rows={len(sheet.rows)} columns={sheet.columns}")

    report = import_rows(
        sheet.rows,
        store,
        config,
        file_name=display_name,
        sheet_name=sheet.sheet_name,
        error_log=error_log,
        clock=clock,
    )
    _flush(error_log)

    logger.info(
        f"Excel processing complete: processed={report.processed_count}, "
        f"skipped={report.skipped_count}, duplicates={report.duplicate_count}"
    )
    return report


def import_base64(
    file_base64: str | None,
    store: DocumentStore,
    config: ImportConfig,
    file_name: str | None = None,
    *,
    logs_dir: Path | None = None,
    clock: Clock = _utcnow,
) -> ImportReport:
    """Import a workbook delivered as base64 text (the upload request body)."""
    if not file_base64:
        logger.error("upload request without fileBase64")
        return failure_report(MISSING_PAYLOAD_MESSAGE)
    try:
        payload = decode_base64_payload(file_base64)
    except DecodeError as e:
        display_name = file_name or "unknown"
        logger.info(f"Processing Excel file: {display_name}")
        return _decode_failure(display_name, e, logs_dir)
    return import_workbook(payload, store, config, file_name, logs_dir=logs_dir, clock=clock)


def _decode_failure(display_name: str, error: DecodeError, logs_dir: Path | None) -> ImportReport:
    """Log an undecodable upload as a file-level error and build the failure report."""
    logger.error(f"failed to decode {display_name}: {error}")
    error_log = ErrorLogBuffer(logs_dir)
    error_log.append(
        ErrorRecord.create(display_name, "<FILE_LEVEL>", FILE_LEVEL_ROW, "DECODE_ERROR", str(error))
    )
    _flush(error_log)
    return failure_report()


def _flush(error_log: ErrorLogBuffer) -> None:
    try:
        path = error_log.flush()
    except OSError as e:
        logger.warning(f"could not write error log: {e}")
        return
    if path is not None:
        logger.info(f"row errors written to {path}")
