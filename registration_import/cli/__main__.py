from __future__ import annotations

import argparse
import json
import os
import sys
import time
from collections.abc import Iterator
from contextlib import contextmanager
from datetime import date, datetime
from pathlib import Path
from typing import Any

from dotenv import load_dotenv

from registration_import.config.loader import DEFAULT_CONFIG_PATH, ConfigError, load_config
from registration_import.db.document_store import (
    DocumentStore,
    InMemoryDocumentStore,
    PostgresDocumentStore,
    StoreError,
    StoreMetrics,
)
from registration_import.excel.reader import DecodeError, missing_headers, read_workbook
from registration_import.logging.init import get_logger, log_summary, set_debug, setup_logging
from registration_import.models.config_models import ImportConfig
from registration_import.services.aggregator import render_summary_line
from registration_import.services.normalizer import normalize_row
from registration_import.services.orchestrator import import_base64, import_workbook
from registration_import.services.resolver import (
    find_registrants_by_email,
    find_registrations_for,
    get_registrant,
)
from registration_import.services.validator import missing_fields

"""CLI entrypoint.

Flow:
- Load .env and config/import.yml
- Open the document store (PostgreSQL, or in-memory with --dry-run)
- Import the uploaded workbook (xlsx file or base64 text file)
- Print the SUMMARY line (and the report JSON with --json)
"""

EXIT_SUCCESS_ALL = 0
EXIT_PARTIAL_FAILURE = 2
EXIT_FATAL = 1


def _resolve_dsn(cfg: ImportConfig) -> str:
    """Build the connection string.

    Priority:
        1. DATABASE_URL / PGDSN (``.env`` overrides the process environment)
        2. individual PGHOST / PGPORT / PGUSER / PGPASSWORD / PGDATABASE
        3. the database section of the YAML config
    """
    db_cfg = cfg.database
    dsn = os.getenv("DATABASE_URL") or os.getenv("PGDSN") or db_cfg.dsn
    if dsn:
        return dsn
    host = os.getenv("PGHOST", db_cfg.host or "localhost")
    port = os.getenv("PGPORT", str(db_cfg.port) if db_cfg.port else "5432")
    user = os.getenv("PGUSER", db_cfg.user or "postgres")
    password = os.getenv("PGPASSWORD", db_cfg.password or "")
    database = os.getenv("PGDATABASE", db_cfg.database or "postgres")
    dsn = f"host={host} port={port} user={user} dbname={database}"
    if password:
        dsn += f" password={password}"
    return dsn


def _log_store_metrics(m: StoreMetrics) -> None:
    get_logger().debug(f"store {m.operation} on {m.collection} took {m.elapsed_seconds:.4f}s")


@contextmanager
def _open_store(cfg: ImportConfig, dry_run: bool, debug: bool = False) -> Iterator[DocumentStore]:
    """Yield the document store for this run.

    DISABLE_DB_CONNECT=1 behaves like --dry-run (in-memory store, nothing persisted).
    With debug on, every database statement is timed in the log.
    """
    if dry_run or os.getenv("DISABLE_DB_CONNECT") == "1":
        yield InMemoryDocumentStore()
        return
    callback = _log_store_metrics if debug else None
    with PostgresDocumentStore.connect(_resolve_dsn(cfg), metrics_callback=callback) as store:
        yield store


def _load_env_file(path: Path, override: bool = True) -> None:
    """Load .env with python-dotenv; its values win over the process environment."""
    if path.exists():
        load_dotenv(dotenv_path=path, override=override)


def _parse_args(argv: list[str]) -> argparse.Namespace:
    p = argparse.ArgumentParser(
        prog="registration-import",
        description="Import survey registration spreadsheets into the registrant store",
    )
    source = p.add_mutually_exclusive_group()
    source.add_argument("--file", type=Path, help="Spreadsheet (.xlsx) to import")
    source.add_argument("--base64-file", type=Path, help="Text file holding the base64 encoded spreadsheet")
    p.add_argument("--file-name", help="Display name of the upload (defaults to the file name)")
    p.add_argument("--config", type=Path, default=DEFAULT_CONFIG_PATH, help="YAML config path")
    p.add_argument("--debug", action="store_true", help="Enable debug logging")
    p.add_argument("--dry-run", action="store_true", help="Use an in-memory store, persist nothing")
    p.add_argument("--json", action="store_true", help="Print the import report as JSON")
    p.add_argument("--inspect-data", action="store_true", help="Print headers & first normalized rows then exit")
    p.add_argument("--init-schema", action="store_true", help="Create the PostgreSQL tables then exit")
    p.add_argument("--show-registrant", metavar="ID", help="Print a registrant and its registrations then exit")
    p.add_argument("--find-email", metavar="EMAIL", help="Print registrants with this email then exit")
    return p.parse_args(argv)


def _jsonable(doc: dict[str, Any]) -> dict[str, Any]:
    return {k: (v.isoformat() if isinstance(v, (datetime, date)) else v) for k, v in doc.items()}


def _inspect_data(payload: bytes, cfg: ImportConfig) -> int:
    try:
        sheet = read_workbook(payload, header_row=cfg.header_row)
    except DecodeError as e:
        print(f"inspect: read_error: {e}")
        return EXIT_FATAL
    print(f"SHEET: {sheet.sheet_name} rows={len(sheet.rows)} cols={sheet.columns}")
    print(f"  missing_headers={missing_headers(sheet, cfg.expected_headers)}")
    for row in sheet.rows[:3]:
        normalized = normalize_row(row, cfg)
        sample = {c.field: normalized.value_of(c.field) for c in cfg.columns}
        print(f"  row {row.row_number}: {json.dumps(sample, ensure_ascii=False)}")
        print(f"    missing_fields={missing_fields(normalized, cfg)}")
    return EXIT_SUCCESS_ALL


def _show_registrant(store: DocumentStore, cfg: ImportConfig, registrant_id: str) -> int:
    doc = get_registrant(store, registrant_id, cfg)
    if doc is None:
        print(f"registrant not found: {registrant_id}")
        return EXIT_FATAL
    registrations = find_registrations_for(store, registrant_id, cfg)
    out = {
        "id": registrant_id,
        **_jsonable(doc),
        "registrations": [{"id": rid, **_jsonable(r)} for rid, r in registrations],
    }
    print(json.dumps(out, ensure_ascii=False, indent=2))
    return EXIT_SUCCESS_ALL


def _find_email(store: DocumentStore, cfg: ImportConfig, email: str) -> int:
    matches = find_registrants_by_email(store, email, cfg)
    if not matches:
        print(f"no registrant with email {email}")
        return EXIT_FATAL
    out = [{"id": rid, **_jsonable(doc)} for rid, doc in matches]
    print(json.dumps(out, ensure_ascii=False, indent=2))
    return EXIT_SUCCESS_ALL


def main(argv: list[str] | None = None) -> int:
    logger = setup_logging()

    # only fall back to sys.argv for None; tests pass []
    if argv is None:
        argv = sys.argv[1:]
    args = _parse_args(argv)
    _load_env_file(Path(".env"), override=True)

    if args.debug:
        set_debug(True)
        logger.debug("debug mode enabled")

    try:
        # the default config path is optional, an explicit one must exist
        cfg = load_config(args.config, required=args.config != DEFAULT_CONFIG_PATH)
    except ConfigError as e:
        logger.error(f"config: {e}")
        return EXIT_FATAL

    payload_text: str | None = None
    payload: bytes | None = None
    file_name = args.file_name
    try:
        if args.file is not None:
            payload = args.file.read_bytes()
            file_name = file_name or args.file.name
        elif args.base64_file is not None:
            payload_text = args.base64_file.read_text(encoding="utf-8")
            file_name = file_name or args.base64_file.stem
    except OSError as e:
        logger.error(f"cannot read input: {e}")
        return EXIT_FATAL

    if args.inspect_data:
        if payload is None:
            logger.error("--inspect-data requires --file")
            return EXIT_FATAL
        return _inspect_data(payload, cfg)

    needs_input = not (args.init_schema or args.show_registrant or args.find_email)
    if needs_input and payload is None and payload_text is None:
        logger.error("one of --file / --base64-file is required")
        return EXIT_FATAL

    start = time.monotonic()
    try:
        with _open_store(cfg, args.dry_run, args.debug) as store:
            if args.init_schema:
                if not isinstance(store, PostgresDocumentStore):
                    logger.error("--init-schema needs a database connection")
                    return EXIT_FATAL
                store.ensure_schema(cfg.registrants_collection, cfg.registrations_collection)
                logger.info("schema ready")
                return EXIT_SUCCESS_ALL
            if args.show_registrant:
                return _show_registrant(store, cfg, args.show_registrant)
            if args.find_email:
                return _find_email(store, cfg, args.find_email)

            mode = "dry-run" if isinstance(store, InMemoryDocumentStore) else "live"
            logger.info(f"mode={mode}")
            if payload is not None:
                report = import_workbook(payload, store, cfg, file_name)
            else:
                report = import_base64(payload_text, store, cfg, file_name)
    except StoreError as e:
        logger.error(f"store: {e}")
        return EXIT_FATAL

    elapsed = time.monotonic() - start
    logger.info(report.message)
    if args.json:
        print(json.dumps(report.to_dict(), ensure_ascii=False))

    # log_summary adds the "SUMMARY " label itself
    log_summary(render_summary_line(report, elapsed)[len("SUMMARY "):])

    if not report.success:
        return EXIT_FATAL
    if report.skipped_count > 0:
        return EXIT_PARTIAL_FAILURE
    return EXIT_SUCCESS_ALL


if __name__ == "__main__":  # pragma: no cover
    raise SystemExit(main())
