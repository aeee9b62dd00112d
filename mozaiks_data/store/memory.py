# mozaiks_data/store/memory.py
from __future__ import annotations

import copy
import json
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional, Sequence, Tuple

from bson import ObjectId

from mozaiks_data.errors import StoreFailure
from mozaiks_data.store.base import StoreAdapter

logger = logging.getLogger("mozaiks_data.store.memory")

MUTATING_OPERATIONS = frozenset(
    {"insert_if_absent", "create_doc", "create_docs", "update_doc", "update_docs", "delete_doc", "delete_docs"}
)


def _log_json(level: int, payload: dict) -> None:
    logger.log(level, json.dumps(payload, separators=(",", ":"), default=str))


def _matches(doc: Mapping[str, Any], query: Mapping[str, Any]) -> bool:
    return all(doc.get(k) == v for k, v in query.items())


@dataclass
class StoreCall:
    operation: str
    collection: str
    args: Dict[str, Any] = field(default_factory=dict)


class InMemoryStoreAdapter(StoreAdapter):
    """Process-local store used in self-hosted dev mode and in tests.

    Every call is recorded in ``calls`` so callers can assert which store
    operations a request issued. ``fail_with`` maps an operation name to an
    exception raised on the next matching call.
    """

    def __init__(self, collections: Optional[Dict[str, Dict[str, Dict[str, Any]]]] = None):
        self._collections: Dict[str, Dict[str, Dict[str, Any]]] = collections or {}
        self._unique_indexes: Dict[str, Tuple[str, ...]] = {}
        self.calls: List[StoreCall] = []
        self.fail_with: Dict[str, Exception] = {}

    # ------------------------------------------------------------------
    # Test helpers
    # ------------------------------------------------------------------
    def seed(self, collection: str, record_id: str, document: Optional[Mapping[str, Any]] = None) -> None:
        doc = dict(document or {})
        doc["_id"] = record_id
        self._collections.setdefault(collection, {})[record_id] = doc

    def documents(self, collection: str) -> List[Dict[str, Any]]:
        return [copy.deepcopy(d) for d in self._collections.get(collection, {}).values()]

    @property
    def mutations(self) -> List[StoreCall]:
        return [c for c in self.calls if c.operation in MUTATING_OPERATIONS]

    def _record(self, operation: str, collection: str, **args: Any) -> None:
        self.calls.append(StoreCall(operation=operation, collection=collection, args=args))
        exc = self.fail_with.pop(operation, None)
        if exc is not None:
            raise exc

    def _coll(self, collection: str) -> Dict[str, Dict[str, Any]]:
        return self._collections.setdefault(collection, {})

    # ------------------------------------------------------------------
    # StoreAdapter
    # ------------------------------------------------------------------
    async def ping(self) -> bool:
        self._record("ping", "admin")
        return True

    async def record_exists(self, collection: str, record_id: str) -> bool:
        self._record("record_exists", collection, record_id=record_id)
        return record_id in self._collections.get(collection, {})

    async def find_one(self, collection: str, query: Mapping[str, Any]) -> Optional[Dict[str, Any]]:
        self._record("find_one", collection, query=dict(query))
        for doc in self._collections.get(collection, {}).values():
            if _matches(doc, query):
                return copy.deepcopy(doc)
        return None

    async def find_many(self, collection: str, query: Mapping[str, Any], *, limit: int = 0) -> List[Dict[str, Any]]:
        self._record("find_many", collection, query=dict(query), limit=limit)
        found = [copy.deepcopy(d) for d in self._collections.get(collection, {}).values() if _matches(d, query)]
        return found[:limit] if limit else found

    async def insert_if_absent(
        self,
        collection: str,
        key: Mapping[str, Any],
        document: Mapping[str, Any],
    ) -> Tuple[Dict[str, Any], bool]:
        self._record("insert_if_absent", collection, key=dict(key))
        # No await between the lookup and the insert, so this is atomic on the loop.
        for doc in self._coll(collection).values():
            if _matches(doc, key):
                return copy.deepcopy(doc), False
        record_id = str(ObjectId())
        stored = {**document, **key, "_id": record_id}
        self._coll(collection)[record_id] = stored
        return copy.deepcopy(stored), True

    async def ensure_unique_index(self, collection: str, fields: Sequence[str]) -> None:
        self._record("create_index", collection, fields=tuple(fields))
        self._unique_indexes[collection] = tuple(fields)

    async def create_doc(self, collection: str, document: Mapping[str, Any]) -> str:
        self._record("create_doc", collection, document=copy.deepcopy(dict(document)))
        record_id = str(document.get("_id") or ObjectId())
        if record_id in self._coll(collection):
            raise StoreFailure(f"insert_one on '{collection}' failed: duplicate _id {record_id}")
        self._coll(collection)[record_id] = {**copy.deepcopy(dict(document)), "_id": record_id}
        _log_json(logging.DEBUG, {"event": "store.create_doc", "collection": collection, "id": record_id})
        return record_id

    async def create_docs(self, collection: str, documents: Sequence[Mapping[str, Any]]) -> int:
        self._record("create_docs", collection, documents=copy.deepcopy([dict(d) for d in documents]))
        coll = self._coll(collection)
        staged: Dict[str, Dict[str, Any]] = {}
        for document in documents:
            record_id = str(document.get("_id") or ObjectId())
            if record_id in coll or record_id in staged:
                raise StoreFailure(f"insert_many on '{collection}' failed: duplicate _id {record_id}")
            staged[record_id] = {**copy.deepcopy(dict(document)), "_id": record_id}
        coll.update(staged)
        return len(staged)

    async def update_doc(self, collection: str, record_id: str, changes: Mapping[str, Any]) -> int:
        self._record("update_doc", collection, record_id=record_id, changes=copy.deepcopy(dict(changes)))
        doc = self._coll(collection).get(record_id)
        if doc is None:
            return 0
        doc.update(copy.deepcopy(dict(changes)))
        return 1

    async def update_docs(
        self,
        collection: str,
        record_ids: Sequence[str],
        changes: Sequence[Mapping[str, Any]],
    ) -> int:
        self._record(
            "update_docs",
            collection,
            record_ids=list(record_ids),
            changes=copy.deepcopy([dict(c) for c in changes]),
        )
        if not record_ids or not changes:
            return 0
        pairs = (
            [(record_id, changes[0]) for record_id in record_ids]
            if len(changes) == 1
            else list(zip(record_ids, changes))
        )
        matched = 0
        coll = self._coll(collection)
        for record_id, change in pairs:
            doc = coll.get(record_id)
            if doc is not None:
                doc.update(copy.deepcopy(dict(change)))
                matched += 1
        return matched

    async def delete_doc(self, collection: str, record_id: str) -> int:
        self._record("delete_doc", collection, record_id=record_id)
        return 1 if self._coll(collection).pop(record_id, None) is not None else 0

    async def delete_docs(self, collection: str, record_ids: Sequence[str]) -> int:
        self._record("delete_docs", collection, record_ids=list(record_ids))
        coll = self._coll(collection)
        return sum(1 for record_id in record_ids if coll.pop(record_id, None) is not None)
