"""Shared fixtures: SQLite-backed document store, in-memory spy store, sample exports."""

from __future__ import annotations

import copy
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence

import pytest
from sqlalchemy import create_engine
from sqlalchemy.pool import StaticPool

from catalog_migrator.db_connector import SqlDocumentStore
from catalog_migrator.models import RawItem
from catalog_migrator.schema import metadata
from catalog_migrator.store import DocumentStore, WriteOp

SAMPLE_FEED = """<?xml version="1.0" encoding="UTF-8"?>
<rss version="2.0"
     xmlns:excerpt="http://wordpress.org/export/1.2/excerpt/"
     xmlns:content="http://purl.org/rss/1.0/modules/content/"
     xmlns:dc="http://purl.org/dc/elements/1.1/"
     xmlns:wp="http://wordpress.org/export/1.2/">
<channel>
  <title>Escuela</title>
  <item>
    <title>Intensivo Lencería Nivel I</title>
    <content:encoded><![CDATA[<p>Taller <b>intensivo</b></p>]]></content:encoded>
    <wp:post_id>101</wp:post_id>
    <wp:post_date>2023-03-01 10:00:00</wp:post_date>
    <wp:post_modified>2023-04-01 12:30:00</wp:post_modified>
    <wp:post_name>intensivo-lenceria-nivel-i</wp:post_name>
    <wp:status>publish</wp:status>
    <wp:post_type>product</wp:post_type>
    <category domain="product_cat" nicename="ciudad-jardin"><![CDATA[Ciudad Jardín]]></category>
    <category domain="product_cat" nicename="lenceria"><![CDATA[Lencería]]></category>
    <wp:postmeta>
      <wp:meta_key><![CDATA[_sku]]></wp:meta_key>
      <wp:meta_value><![CDATA[LEN-01]]></wp:meta_value>
    </wp:postmeta>
    <wp:postmeta>
      <wp:meta_key><![CDATA[precio]]></wp:meta_key>
      <wp:meta_value><![CDATA[$5.000 en efectivo, $6000 otros medios]]></wp:meta_value>
    </wp:postmeta>
    <wp:postmeta>
      <wp:meta_key><![CDATA[_product_image_gallery]]></wp:meta_key>
      <wp:meta_value><![CDATA[11,12]]></wp:meta_value>
    </wp:postmeta>
  </item>
  <item>
    <title>Moldería Online</title>
    <wp:post_id>202</wp:post_id>
    <wp:post_date>2023-05-01 09:00:00</wp:post_date>
    <wp:post_modified>2023-05-02 09:00:00</wp:post_modified>
    <wp:post_name>molderia-online</wp:post_name>
    <wp:status>publish</wp:status>
    <wp:post_type>curso-online</wp:post_type>
    <wp:postmeta>
      <wp:meta_key><![CDATA[producto_relacionado]]></wp:meta_key>
      <wp:meta_value><![CDATA[101]]></wp:meta_value>
    </wp:postmeta>
    <wp:postmeta>
      <wp:meta_key><![CDATA[lessons_0_title]]></wp:meta_key>
      <wp:meta_value><![CDATA[Intro]]></wp:meta_value>
    </wp:postmeta>
    <wp:postmeta>
      <wp:meta_key><![CDATA[lessons_0_link_video]]></wp:meta_key>
      <wp:meta_value><![CDATA[https://vimeo.com/1]]></wp:meta_value>
    </wp:postmeta>
  </item>
  <item>
    <title>Cómo elegir telas</title>
    <content:encoded><![CDATA[<p>Consejos</p>]]></content:encoded>
    <wp:post_id>303</wp:post_id>
    <wp:post_date>2023-06-01 08:00:00</wp:post_date>
    <wp:post_modified>2023-06-01 08:00:00</wp:post_modified>
    <wp:post_name>como-elegir-telas</wp:post_name>
    <wp:status>draft</wp:status>
    <wp:post_type>tips</wp:post_type>
    <category domain="category" nicename="telas"><![CDATA[Telas]]></category>
  </item>
  <item>
    <title>Attachment without id</title>
    <wp:post_type>attachment</wp:post_type>
  </item>
</channel>
</rss>
"""


class SpyStore(DocumentStore):
    """In-memory store that records every commit."""

    def __init__(self, collections: Optional[Dict[str, List[Dict[str, Any]]]] = None) -> None:
        self.collections: Dict[str, Dict[str, Dict[str, Any]]] = {}
        for name, docs in (collections or {}).items():
            self.collections[name] = {
                doc["id"]: {k: v for k, v in doc.items() if k != "id"} for doc in docs
            }
        self.commits: List[Sequence[WriteOp]] = []
        self.get_many_calls: List[List[str]] = []

    def _doc(self, collection: str, doc_id: str) -> Optional[Dict[str, Any]]:
        data = self.collections.get(collection, {}).get(doc_id)
        if data is None:
            return None
        return {**copy.deepcopy(data), "id": doc_id}

    def get_by_id(self, collection, doc_id):
        return self._doc(collection, str(doc_id))

    def _get_many(self, collection, doc_ids):
        self.get_many_calls.append(list(doc_ids))
        return [doc for doc in (self._doc(collection, d) for d in doc_ids) if doc]

    def query(self, collection, field, value):
        return [doc for doc in self.list_all(collection) if doc.get(field) == value]

    def list_all(self, collection):
        return [self._doc(collection, d) for d in self.collections.get(collection, {})]

    def commit(self, ops):
        self.commits.append(tuple(ops))
        for op in ops:
            docs = self.collections.setdefault(op.collection, {})
            if op.kind == "update":
                docs.setdefault(op.doc_id, {}).update(op.data)
            else:
                docs[op.doc_id] = dict(op.data)


@pytest.fixture
def engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    metadata.create_all(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def sql_store(engine):
    return SqlDocumentStore(engine)


@pytest.fixture
def spy_store():
    return SpyStore()


@pytest.fixture
def sample_feed(tmp_path) -> Path:
    path = tmp_path / "export.xml"
    path.write_text(SAMPLE_FEED, encoding="utf-8")
    return path


def make_item(post_id="101", post_type="product", meta=None, **kwargs) -> RawItem:
    """Build a RawItem from a plain ``{key: value}`` meta dict."""
    postmeta = [{"key": key, "value": value} for key, value in (meta or {}).items()]
    kwargs.setdefault("status", "publish")
    kwargs.setdefault("post_date", "2023-03-01 10:00:00")
    kwargs.setdefault("post_modified", "2023-04-01 12:30:00")
    return RawItem(post_id=post_id, post_type=post_type, postmeta=postmeta, **kwargs)


@pytest.fixture
def item_factory():
    return make_item
