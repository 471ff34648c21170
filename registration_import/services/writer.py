from __future__ import annotations

from datetime import datetime

from ..db.document_store import DocumentStore
from ..models.config_models import ImportConfig
from ..models.registration import OPTIONAL_RECORD_FIELDS, RegistrationRecord
from ..models.row_data import NormalizedRow

__all__ = [
    "build_registration_record",
    "write_registration",
]


def build_registration_record(
    row: NormalizedRow, registrant_id: str, now: datetime
) -> RegistrationRecord:
    """Denormalize the row into a RegistrationRecord.

    Optional answers are stored as None rather than "" so "not provided" can be
    told apart downstream.
    """
    optional = {f: (getattr(row, f) or None) for f in OPTIONAL_RECORD_FIELDS}
    return RegistrationRecord(
        registrant_id=registrant_id,
        content_hash=row.content_hash,
        activity_name=row.activity_name,
        name=row.name,
        resident_type=row.resident_status.value,
        email=row.email,
        phone=row.phone,
        submit_time=row.submit_time,
        created_at=now,
        **optional,
    )


def write_registration(
    store: DocumentStore,
    row: NormalizedRow,
    registrant_id: str,
    config: ImportConfig,
    now: datetime,
) -> str:
    record = build_registration_record(row, registrant_id, now)
    return store.insert(config.registrations_collection, record.to_document())
