from __future__ import annotations

import json
from pathlib import Path
from typing import Any
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

import jsonschema
import yaml
from jsonschema.exceptions import ValidationError

from ..models.config_models import (
    DEFAULT_COLUMNS,
    DEFAULT_RESIDENT_STATUS_VOCABULARY,
    SUBMIT_TIME_FIELD,
    ColumnSpec,
    DatabaseConfig,
    ImportConfig,
)

"""Config loader.

Responsibilities:
- Load YAML config (default config/import.yml)
- Validate against the packaged JSON schema
- Apply defaults (built-in form columns, vocabulary, timezone=UTC)
"""

SCHEMA_PATH = Path(__file__).parent / "config_schema.json"
DEFAULT_CONFIG_PATH = Path("config/import.yml")


class ConfigError(Exception):
    pass


def _validate_config_schema(data: dict[str, Any]) -> None:
    """Validate config data against JSON schema.

    Raises:
        ConfigError: schema file missing or unreadable, or the data violates it
    """
    if not SCHEMA_PATH.exists():
        raise ConfigError(f"config schema not found: {SCHEMA_PATH}")

    try:
        schema = json.loads(SCHEMA_PATH.read_text(encoding="utf-8"))
        jsonschema.validate(data, schema)
    except json.JSONDecodeError as e:
        raise ConfigError(f"invalid schema file: {e}") from e
    except ValidationError as e:
        raise ConfigError(f"config validation failed: {e.message}") from e


def _build_columns(raw: list[dict[str, Any]] | None) -> tuple[ColumnSpec, ...]:
    if not raw:
        return DEFAULT_COLUMNS
    columns = tuple(
        ColumnSpec(
            header=str(c["header"]).strip(),
            field=c["field"],
            # submission time falls back to import time, never gates a row
            required=bool(c.get("required", c["field"] != SUBMIT_TIME_FIELD)),
        )
        for c in raw
    )
    fields = [c.field for c in columns]
    dupes = sorted({f for f in fields if fields.count(f) > 1})
    if dupes:
        raise ConfigError(f"columns map the same field more than once: {dupes}")
    return columns


def config_from_dict(data: dict[str, Any]) -> ImportConfig:
    _validate_config_schema(data)

    tz = data.get("timezone", "UTC")
    try:
        ZoneInfo(tz)
    except (ZoneInfoNotFoundError, ValueError) as e:
        raise ConfigError(f"unknown timezone: {tz}") from e

    db_raw = data.get("database") or {}
    collections = data.get("collections") or {}
    vocabulary = data.get("resident_status_vocabulary")
    return ImportConfig(
        columns=_build_columns(data.get("columns")),
        resident_status_vocabulary=dict(vocabulary or DEFAULT_RESIDENT_STATUS_VOCABULARY),
        timezone=tz,
        header_row=data.get("header_row", 0),
        registrants_collection=collections.get("registrants", "registrants"),
        registrations_collection=collections.get(
            "registration_history", "registration_history"
        ),
        database=DatabaseConfig(
            host=db_raw.get("host"),
            port=db_raw.get("port"),
            user=db_raw.get("user"),
            password=db_raw.get("password"),
            database=db_raw.get("database"),
            dsn=db_raw.get("dsn"),
        ),
    )


def load_config(path: Path, *, required: bool = True) -> ImportConfig:
    """Load and validate a YAML config file.

    With required=False a missing file yields the built-in defaults.
    """
    if not path.exists():
        if required:
            raise ConfigError(f"config file not found: {path}")
        return ImportConfig()
    try:
        data = yaml.safe_load(path.read_text(encoding="utf-8")) or {}
    except yaml.YAMLError as e:
        raise ConfigError(f"invalid yaml: {e}") from e
    if not isinstance(data, dict):
        raise ConfigError(f"config root must be a mapping: {path}")

    return config_from_dict(data)
