"""Document store contract: collection-scoped CRUD plus batched writes."""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Dict, Iterable, List, Literal, Mapping, Optional, Sequence

BATCH_GET_LIMIT = 10

WriteKind = Literal["set", "update"]


@dataclass(frozen=True)
class WriteOp:
    kind: WriteKind
    collection: str
    doc_id: str
    data: Dict[str, Any]


def _strip_id(data: Mapping[str, Any]) -> Dict[str, Any]:
    return {key: value for key, value in data.items() if key != "id"}


class WriteBatch:
    """Accumulates writes until ``commit`` sends them to the store in one unit."""

    def __init__(self, store: "DocumentStore") -> None:
        self._store = store
        self._ops: List[WriteOp] = []

    def set(self, collection: str, doc_id: str, data: Mapping[str, Any]) -> None:
        """Create or fully replace a document."""
        self._ops.append(WriteOp("set", collection, doc_id, _strip_id(data)))

    def update(self, collection: str, doc_id: str, data: Mapping[str, Any]) -> None:
        """Overwrite the given top-level attributes of an existing document."""
        self._ops.append(WriteOp("update", collection, doc_id, _strip_id(data)))

    def __len__(self) -> int:
        return len(self._ops)

    @property
    def operations(self) -> Sequence[WriteOp]:
        return tuple(self._ops)

    def clear(self) -> None:
        self._ops = []

    def commit(self) -> int:
        count = len(self._ops)
        if count:
            self._store.commit(self._ops)
        self._ops = []
        return count


class DocumentStore(ABC):
    """Documents are plain dicts; reads include the document id under ``"id"``."""

    @abstractmethod
    def get_by_id(self, collection: str, doc_id: str) -> Optional[Dict[str, Any]]:
        ...

    @abstractmethod
    def _get_many(self, collection: str, doc_ids: Sequence[str]) -> List[Dict[str, Any]]:
        ...

    @abstractmethod
    def query(self, collection: str, field: str, value: Any) -> List[Dict[str, Any]]:
        """Documents whose ``field`` equals ``value``."""

    @abstractmethod
    def list_all(self, collection: str) -> List[Dict[str, Any]]:
        """Every document in the collection, in insertion order."""

    @abstractmethod
    def commit(self, ops: Sequence[WriteOp]) -> None:
        """Apply ``ops`` atomically or raise StoreWriteError."""

    def batch_get(self, collection: str, doc_ids: Iterable[str]) -> List[Dict[str, Any]]:
        """Fetch documents in chunks of BATCH_GET_LIMIT, in request order; missing ids are skipped."""
        ids = list(dict.fromkeys(str(doc_id) for doc_id in doc_ids))
        found: Dict[str, Dict[str, Any]] = {}
        for start in range(0, len(ids), BATCH_GET_LIMIT):
            for doc in self._get_many(collection, ids[start : start + BATCH_GET_LIMIT]):
                found[doc["id"]] = doc
        return [found[doc_id] for doc_id in ids if doc_id in found]

    def batch(self) -> WriteBatch:
        return WriteBatch(self)
