from __future__ import annotations

import time
import uuid
from collections.abc import Callable, Mapping
from dataclasses import dataclass
from typing import Any

import psycopg2
from psycopg2 import sql

"""Document store adapters.

The importer needs three capabilities from its store: insert with a generated
id, equality-filtered lookup, and id-based read. There are no transactions and
no uniqueness constraints; natural-key checks are read-then-write in the
service layer.

- InMemoryDocumentStore: dict backed, used for dry runs and tests
- PostgresDocumentStore: one table per collection, one column per document key
"""

__all__ = [
    "StoreError",
    "StoreMetrics",
    "DocumentStore",
    "InMemoryDocumentStore",
    "PostgresDocumentStore",
]


class StoreError(Exception):
    pass


@dataclass(frozen=True)
class StoreMetrics:
    """Timing of a single store call."""
    operation: str  # insert / find / get
    collection: str
    elapsed_seconds: float


Document = dict[str, Any]


class DocumentStore:
    """Minimal document-store interface used by the import pipeline."""

    def insert(self, collection: str, document: Mapping[str, Any]) -> str:
        raise NotImplementedError

    def find(self, collection: str, **filters: Any) -> list[tuple[str, Document]]:
        """Documents whose fields equal every filter value, in insertion order."""
        raise NotImplementedError

    def get(self, collection: str, doc_id: str) -> Document | None:
        raise NotImplementedError


class InMemoryDocumentStore(DocumentStore):
    def __init__(self) -> None:
        self._collections: dict[str, dict[str, Document]] = {}

    def insert(self, collection: str, document: Mapping[str, Any]) -> str:
        doc_id = uuid.uuid4().hex
        self._collections.setdefault(collection, {})[doc_id] = dict(document)
        return doc_id

    def find(self, collection: str, **filters: Any) -> list[tuple[str, Document]]:
        docs = self._collections.get(collection, {})
        return [
            (doc_id, dict(doc))
            for doc_id, doc in docs.items()
            if all(doc.get(k) == v for k, v in filters.items())
        ]

    def get(self, collection: str, doc_id: str) -> Document | None:
        doc = self._collections.get(collection, {}).get(doc_id)
        return dict(doc) if doc is not None else None

    def count(self, collection: str) -> int:
        return len(self._collections.get(collection, {}))


# Column types for ensure_schema; every other document key is text
_TIMESTAMP_COLUMNS = {"created_at", "updated_at", "submit_time"}

_REGISTRANT_COLUMNS = (
    "name", "email", "phone", "gender", "age", "line_id", "resident_type",
    "created_at", "updated_at",
)
_REGISTRATION_COLUMNS = (
    "registrant_id", "content_hash", "activity_name", "name", "resident_type",
    "email", "phone", "gender", "line_id", "housing_location", "age",
    "children_count", "sports_experience", "injury_history", "info_source",
    "suggestions", "submit_time", "created_at",
)


class PostgresDocumentStore(DocumentStore):
    """Collections as PostgreSQL tables via psycopg2.

    The connection runs in autocommit mode: each insert stands on its own,
    so a failing row never rolls back earlier rows.
    """

    def __init__(
        self,
        conn: Any,
        metrics_callback: Callable[[StoreMetrics], None] | None = None,
    ) -> None:
        self._conn = conn
        self._conn.autocommit = True
        self._metrics_callback = metrics_callback

    @classmethod
    def connect(cls, dsn: str, **kwargs: Any) -> PostgresDocumentStore:
        try:
            conn = psycopg2.connect(dsn)
        except psycopg2.Error as e:
            raise StoreError(f"cannot connect to database: {e}") from e
        return cls(conn, **kwargs)

    def close(self) -> None:
        if not self._conn.closed:
            self._conn.close()

    def __enter__(self) -> PostgresDocumentStore:
        return self

    def __exit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        self.close()

    def _execute(
        self, operation: str, collection: str, query: Any, params: Any
    ) -> tuple[list[str], list[tuple[Any, ...]]]:
        """Run one statement, returning (column names, rows)."""
        start = time.time()
        try:
            with self._conn.cursor() as cur:
                cur.execute(query, params)
                if cur.description is None:
                    return [], []
                return [d[0] for d in cur.description], cur.fetchall()
        except psycopg2.Error as e:
            raise StoreError(f"{operation} on {collection} failed: {e}") from e
        finally:
            if self._metrics_callback is not None:
                self._metrics_callback(
                    StoreMetrics(operation, collection, time.time() - start)
                )

    def insert(self, collection: str, document: Mapping[str, Any]) -> str:
        columns = list(document.keys())
        query = sql.SQL("INSERT INTO {table} ({cols}) VALUES ({vals}) RETURNING id").format(
            table=sql.Identifier(collection),
            cols=sql.SQL(",").join(sql.Identifier(c) for c in columns),
            vals=sql.SQL(",").join(sql.Placeholder() for _ in columns),
        )
        _, rows = self._execute("insert", collection, query, [document[c] for c in columns])
        if not rows:
            raise StoreError(f"insert on {collection} returned no id")
        return str(rows[0][0])

    def _select(self, collection: str, where: Any, params: list[Any]) -> list[tuple[str, Document]]:
        query = sql.SQL("SELECT * FROM {table} WHERE {where} ORDER BY created_at, id").format(
            table=sql.Identifier(collection), where=where
        )
        names, fetched = self._execute("find", collection, query, params)
        result: list[tuple[str, Document]] = []
        for row in fetched:
            doc = dict(zip(names, row, strict=True))
            doc_id = str(doc.pop("id"))
            result.append((doc_id, doc))
        return result

    def find(self, collection: str, **filters: Any) -> list[tuple[str, Document]]:
        if not filters:
            where = sql.SQL("TRUE")
        else:
            where = sql.SQL(" AND ").join(
                sql.SQL("{} = {}").format(sql.Identifier(k), sql.Placeholder())
                for k in filters
            )
        return self._select(collection, where, list(filters.values()))

    def get(self, collection: str, doc_id: str) -> Document | None:
        found = self._select(
            collection, sql.SQL("id = {}").format(sql.Placeholder()), [doc_id]
        )
        return found[0][1] if found else None

    def ensure_schema(self, registrants: str = "registrants", registrations: str = "registration_history") -> None:
        """Create both collections as tables if they do not exist yet.

        Lookup indexes are non-unique; the (name, phone) and content hash
        keys are only checked by the importer's lookups.
        """
        for table, columns, indexes in (
            (registrants, _REGISTRANT_COLUMNS, (("name", "phone"), ("email",))),
            (registrations, _REGISTRATION_COLUMNS, (("content_hash",), ("registrant_id",))),
        ):
            col_defs = [sql.SQL("id text PRIMARY KEY DEFAULT gen_random_uuid()::text")]
            for c in columns:
                col_type = "timestamptz" if c in _TIMESTAMP_COLUMNS else "text"
                col_defs.append(sql.SQL("{} " + col_type).format(sql.Identifier(c)))
            self._execute(
                "ensure_schema",
                table,
                sql.SQL("CREATE TABLE IF NOT EXISTS {} ({})").format(
                    sql.Identifier(table), sql.SQL(", ").join(col_defs)
                ),
                None,
            )
            for idx_cols in indexes:
                idx_name = f"{table}_{'_'.join(idx_cols)}_idx"
                self._execute(
                    "ensure_schema",
                    table,
                    sql.SQL("CREATE INDEX IF NOT EXISTS {} ON {} ({})").format(
                        sql.Identifier(idx_name),
                        sql.Identifier(table),
                        sql.SQL(",").join(sql.Identifier(c) for c in idx_cols),
                    ),
                    None,
                )
