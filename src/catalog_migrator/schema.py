from __future__ import annotations

from sqlalchemy import (JSON, BigInteger, Column, DateTime, Integer, MetaData,
                        Table, Text, UniqueConstraint)
from sqlalchemy.dialects.postgresql import JSONB

metadata = MetaData()

documents = Table(
    "documents",
    metadata,
    # SQLite only autoincrements an INTEGER primary key.
    Column("id", BigInteger().with_variant(Integer, "sqlite"), primary_key=True),
    Column("collection", Text, nullable=False),
    Column("doc_id", Text, nullable=False),
    Column("data", JSON().with_variant(JSONB, "postgresql"), nullable=False),
    Column("created_at", DateTime(timezone=True), nullable=False),
    Column("updated_at", DateTime(timezone=True), nullable=False),
    UniqueConstraint("collection", "doc_id", name="uq_documents_collection_doc_id"),
)
