"""Idempotent upsert of mapped export items into the document store."""

from __future__ import annotations

import logging
from typing import Any, Dict, Iterable, List, Optional

from rich.console import Console

from .config import DEFAULT_BATCH_SIZE
from .errors import ItemMappingError, StoreWriteError
from .mappings.common import parse_legacy_id
from .mappings.registry import MappingSpec, map_item
from .models import RawItem, RunStats
from .store import DocumentStore, WriteBatch

LOGGER = logging.getLogger("catalog_migrator.ingest")


def preserve_link(
    data: Dict[str, Any], existing: Dict[str, Any], link_field: Optional[str]
) -> None:
    """Keep a relationship set by the link job when the fresh mapping has none."""
    if not link_field or data.get(link_field) is not None:
        return
    if existing.get(link_field) is not None:
        data[link_field] = existing[link_field]


class Migrator:
    """Map raw items with ``spec`` and upsert them by legacy id.

    Writes are queued in a batch and flushed every ``batch_size`` documents and
    at the end of input. With ``dry_run`` set, every read and decision happens
    but nothing is committed.
    """

    def __init__(
        self,
        store: DocumentStore,
        spec: MappingSpec,
        batch_size: int = DEFAULT_BATCH_SIZE,
        dry_run: bool = True,
        keep_documents: bool = False,
    ) -> None:
        self._store = store
        self._spec = spec
        self._batch_size = max(1, batch_size)
        self._dry_run = dry_run
        self._keep_documents = keep_documents
        self.documents: List[Dict[str, Any]] = []

    def run(self, items: Iterable[RawItem], console: Optional[Console] = None) -> RunStats:
        items = list(items)
        stats = RunStats()
        batch = self._store.batch()
        active_console = console or Console(stderr=True)

        try:
            self._run(items, stats, batch, active_console)
        except StoreWriteError as exc:
            exc.counters = stats.as_dict()
            LOGGER.error(
                "%s migration aborted after %s written documents: %s",
                self._spec.name,
                stats.written,
                exc,
            )
            raise

        LOGGER.info(
            "%s migration finished: %s processed, %s created, %s updated, %s errors, %s skipped",
            self._spec.name,
            stats.processed,
            stats.created,
            stats.updated,
            stats.errors,
            stats.skipped,
        )
        return stats

    def _run(
        self, items: List[RawItem], stats: RunStats, batch: WriteBatch, console: Console
    ) -> None:
        collection = self._spec.collection
        with console.status(f"Migrating {self._spec.name}...") as status:
            for item in items:
                legacy_id = parse_legacy_id(item.post_id)
                if legacy_id is None:
                    LOGGER.warning(
                        "Skipping %s item without a valid legacy id (%r)",
                        self._spec.name,
                        item.post_id,
                    )
                    stats.skipped += 1
                    continue

                doc_id = str(legacy_id)
                try:
                    document = map_item(self._spec, item)
                except ItemMappingError as exc:
                    stats.errors += 1
                    LOGGER.error(
                        "Failed to map %s %s (%s): %s",
                        self._spec.name,
                        doc_id,
                        item.slug or item.title,
                        exc,
                    )
                    continue

                data = document.to_document()
                existing = self._store.get_by_id(collection, doc_id)
                if existing is not None:
                    preserve_link(data, existing, self._spec.link_field)
                    batch.update(collection, doc_id, data)
                    stats.updated += 1
                else:
                    batch.set(collection, doc_id, data)
                    stats.created += 1
                stats.processed += 1

                if self._keep_documents:
                    self.documents.append({"id": doc_id, **data})

                if len(batch) >= self._batch_size:
                    self._flush(batch, stats)
                    status.update(
                        f"Processed {stats.processed}/{len(items)} {self._spec.name}"
                    )
                    LOGGER.info(
                        "Processed %s/%s %s", stats.processed, len(items), self._spec.name
                    )

            self._flush(batch, stats)

    def _flush(self, batch: WriteBatch, stats: RunStats) -> None:
        if not len(batch):
            return
        if self._dry_run:
            LOGGER.debug("Dry run: discarding %s queued writes", len(batch))
            batch.clear()
            return
        committed = batch.commit()
        stats.written += committed
        LOGGER.debug("Committed %s writes to %s", committed, self._spec.collection)
