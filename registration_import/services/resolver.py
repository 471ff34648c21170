from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime

from ..db.document_store import Document, DocumentStore
from ..models.config_models import ImportConfig
from ..models.registration import Registrant
from ..models.row_data import NormalizedRow

"""Natural-key resolution against the document store.

Two lookups carry the importer's consistency guarantees:

- registrant by (name, phone): reuse the first match or create one
- registration history by content hash: any match marks the row a duplicate

Both are read-then-write sequences without atomicity. Concurrent imports, or a
store that lags its own writes, can observe "no match" twice and insert twice.
Callers only depend on the call shape below, so a store with conditional or
unique-constrained writes can replace the lookups without touching the
pipeline.
"""

__all__ = [
    "Resolution",
    "build_registrant",
    "resolve_or_create_registrant",
    "is_duplicate",
    "find_registrants_by_email",
    "get_registrant",
    "find_registrations_for",
]

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Resolution:
    registrant_id: str
    created: bool


def build_registrant(row: NormalizedRow, now: datetime) -> Registrant:
    return Registrant(
        name=row.name,
        email=row.email,
        phone=row.phone,
        gender=row.gender,
        age=row.age,
        line_id=row.line_id,
        resident_type=row.resident_status.value,
        created_at=now,
        updated_at=now,
    )


def resolve_or_create_registrant(
    store: DocumentStore, row: NormalizedRow, config: ImportConfig, now: datetime
) -> Resolution:
    """Return the id of the registrant with this (name, phone), creating it if absent.

    When several registrants share the key the first one is reused without
    further disambiguation. Store errors propagate.
    """
    matches = store.find(config.registrants_collection, name=row.name, phone=row.phone)
    if matches:
        if len(matches) > 1:
            logger.debug(
                f"row {row.row_number}: {len(matches)} registrants share name/phone, using {matches[0][0]}"
            )
        return Resolution(registrant_id=matches[0][0], created=False)

    registrant = build_registrant(row, now)
    registrant_id = store.insert(config.registrants_collection, registrant.to_document())
    logger.debug(f"row {row.row_number}: created registrant {registrant_id}")
    return Resolution(registrant_id=registrant_id, created=True)


def is_duplicate(store: DocumentStore, content_hash: str, config: ImportConfig) -> bool:
    """True when a registration with this content hash is already on record."""
    return bool(store.find(config.registrations_collection, content_hash=content_hash))


def find_registrants_by_email(
    store: DocumentStore, email: str, config: ImportConfig
) -> list[tuple[str, Document]]:
    return store.find(config.registrants_collection, email=email)


def get_registrant(store: DocumentStore, registrant_id: str, config: ImportConfig) -> Document | None:
    return store.get(config.registrants_collection, registrant_id)


def find_registrations_for(
    store: DocumentStore, registrant_id: str, config: ImportConfig
) -> list[tuple[str, Document]]:
    return store.find(config.registrations_collection, registrant_id=registrant_id)
