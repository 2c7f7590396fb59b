from __future__ import annotations

import logging
import time
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Sequence

from sqlalchemy import create_engine, select, text
from sqlalchemy.engine import Connection, Engine
from sqlalchemy.exc import OperationalError, SQLAlchemyError

from .errors import FatalConfigError, StoreWriteError
from .schema import documents, metadata
from .store import DocumentStore, WriteOp

LOGGER = logging.getLogger("catalog_migrator.db")


class DatabaseSession:
    """Manage the SQLAlchemy engine backing the document store."""

    def __init__(self, url: str, connect_timeout: float = 60.0) -> None:
        self._url = url
        self._connect_timeout = connect_timeout
        self._engine: Optional[Engine] = None

    def open(self) -> Engine:
        if self._engine is not None:
            return self._engine

        deadline = time.time() + self._connect_timeout
        attempts = 0
        while True:
            attempts += 1
            try:
                LOGGER.info("Creating SQLAlchemy engine (attempt %s)", attempts)
                engine = create_engine(self._url, future=True)
                with engine.connect() as connection:
                    connection.execute(text("SELECT 1"))
                self._engine = engine
                LOGGER.info("Connected to database")
                break
            except OperationalError as exc:
                if time.time() >= deadline:
                    raise FatalConfigError("Database connection timed out") from exc
                LOGGER.warning("Database not ready yet (%s), retrying...", exc)
                time.sleep(min(2 * attempts, 10))
            except (SQLAlchemyError, ImportError, ValueError) as exc:
                raise FatalConfigError(f"Cannot connect to database: {exc}") from exc

        return self._engine

    def ensure_schema(self) -> None:
        metadata.create_all(self.engine)

    @property
    def engine(self) -> Engine:
        if self._engine is None:
            raise RuntimeError("Engine not initialised; call open()")
        return self._engine

    def dispose(self) -> None:
        if self._engine is not None:
            self._engine.dispose()
        self._engine = None


def _as_document(doc_id: str, data: Any) -> Dict[str, Any]:
    document = dict(data or {})
    document["id"] = doc_id
    return document


class SqlDocumentStore(DocumentStore):
    """Document store over a single ``documents`` table (JSON payload per row)."""

    def __init__(self, engine: Engine) -> None:
        self._engine = engine

    def get_by_id(self, collection: str, doc_id: str) -> Optional[Dict[str, Any]]:
        stmt = select(documents.c.data).where(
            documents.c.collection == collection, documents.c.doc_id == str(doc_id)
        )
        with self._engine.connect() as conn:
            data = conn.execute(stmt).scalar_one_or_none()
        if data is None:
            return None
        return _as_document(str(doc_id), data)

    def _get_many(self, collection: str, doc_ids: Sequence[str]) -> List[Dict[str, Any]]:
        stmt = select(documents.c.doc_id, documents.c.data).where(
            documents.c.collection == collection, documents.c.doc_id.in_(list(doc_ids))
        )
        with self._engine.connect() as conn:
            rows = conn.execute(stmt).all()
        return [_as_document(row.doc_id, row.data) for row in rows]

    def query(self, collection: str, field: str, value: Any) -> List[Dict[str, Any]]:
        stmt = (
            select(documents.c.doc_id, documents.c.data)
            .where(
                documents.c.collection == collection,
                documents.c.data[field].as_string() == str(value),
            )
            .order_by(documents.c.id)
        )
        with self._engine.connect() as conn:
            rows = conn.execute(stmt).all()
        return [_as_document(row.doc_id, row.data) for row in rows]

    def list_all(self, collection: str) -> List[Dict[str, Any]]:
        stmt = (
            select(documents.c.doc_id, documents.c.data)
            .where(documents.c.collection == collection)
            .order_by(documents.c.id)
        )
        with self._engine.connect() as conn:
            rows = conn.execute(stmt).all()
        return [_as_document(row.doc_id, row.data) for row in rows]

    def commit(self, ops: Sequence[WriteOp]) -> None:
        try:
            with self._engine.begin() as conn:
                for op in ops:
                    self._apply(conn, op)
        except SQLAlchemyError as exc:
            raise StoreWriteError(f"Batch of {len(ops)} writes failed: {exc}") from exc

    def _apply(self, conn: Connection, op: WriteOp) -> None:
        now = datetime.now(timezone.utc)
        where = (documents.c.collection == op.collection) & (
            documents.c.doc_id == op.doc_id
        )
        existing = conn.execute(select(documents.c.data).where(where)).first()

        if op.kind == "update":
            if existing is None:
                raise StoreWriteError(
                    f"Cannot update missing document {op.collection}/{op.doc_id}"
                )
            merged = dict(existing.data or {})
            merged.update(op.data)
            conn.execute(documents.update().where(where).values(data=merged, updated_at=now))
            return

        if existing is None:
            conn.execute(
                documents.insert().values(
                    collection=op.collection,
                    doc_id=op.doc_id,
                    data=dict(op.data),
                    created_at=now,
                    updated_at=now,
                )
            )
        else:
            conn.execute(
                documents.update().where(where).values(data=dict(op.data), updated_at=now)
            )
