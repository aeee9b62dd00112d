# mozaiks_data/store/mongo.py
from __future__ import annotations

import logging
from contextlib import contextmanager
from typing import Any, Dict, Iterator, List, Mapping, Optional, Sequence, Tuple

from bson import ObjectId
from motor.motor_asyncio import AsyncIOMotorDatabase
from pymongo import ASCENDING, UpdateOne
from pymongo.errors import (
    BulkWriteError,
    ConnectionFailure,
    DuplicateKeyError,
    ExecutionTimeout,
    PyMongoError,
)

from mozaiks_data.errors import StoreConflict, StoreFailure, StoreUnavailable
from mozaiks_data.store.base import StoreAdapter

logger = logging.getLogger("mozaiks_data.store.mongo")

_DUPLICATE_KEY_CODES = {11000, 11001, 12582}


def coerce_object_id(value: Any) -> Any:
    """Use an ObjectId when the id looks like one, the raw value otherwise."""
    if isinstance(value, str) and ObjectId.is_valid(value):
        return ObjectId(value)
    return value


def _bulk_error_is_conflict(exc: BulkWriteError) -> bool:
    errors = (exc.details or {}).get("writeErrors") or []
    return bool(errors) and all(err.get("code") in _DUPLICATE_KEY_CODES for err in errors)


@contextmanager
def _translate_errors(operation: str, collection: str) -> Iterator[None]:
    try:
        yield
    except DuplicateKeyError as exc:
        raise StoreConflict(f"{operation} on '{collection}' hit a duplicate key") from exc
    except BulkWriteError as exc:
        if _bulk_error_is_conflict(exc):
            raise StoreConflict(f"{operation} on '{collection}' hit a duplicate key") from exc
        raise StoreFailure(f"{operation} on '{collection}' failed: {exc}") from exc
    except (ConnectionFailure, ExecutionTimeout) as exc:
        logger.error("MongoDB unreachable during %s on %s: %s", operation, collection, exc)
        raise StoreUnavailable(f"{operation} on '{collection}' failed: store unreachable") from exc
    except PyMongoError as exc:
        raise StoreFailure(f"{operation} on '{collection}' failed: {exc}") from exc


class MotorStoreAdapter(StoreAdapter):
    """StoreAdapter backed by a Motor (async MongoDB) database handle."""

    def __init__(self, db: AsyncIOMotorDatabase):
        self._db = db

    async def ping(self) -> bool:
        with _translate_errors("ping", "admin"):
            await self._db.command("ping")
        return True

    async def record_exists(self, collection: str, record_id: str) -> bool:
        with _translate_errors("record_exists", collection):
            doc = await self._db[collection].find_one({"_id": coerce_object_id(record_id)}, projection={"_id": 1})
        return doc is not None

    async def find_one(self, collection: str, query: Mapping[str, Any]) -> Optional[Dict[str, Any]]:
        with _translate_errors("find_one", collection):
            return await self._db[collection].find_one(dict(query))

    async def find_many(self, collection: str, query: Mapping[str, Any], *, limit: int = 0) -> List[Dict[str, Any]]:
        with _translate_errors("find_many", collection):
            cursor = self._db[collection].find(dict(query))
            if limit:
                cursor = cursor.limit(limit)
            return await cursor.to_list(length=limit or None)

    async def insert_if_absent(
        self,
        collection: str,
        key: Mapping[str, Any],
        document: Mapping[str, Any],
    ) -> Tuple[Dict[str, Any], bool]:
        coll = self._db[collection]
        # Filter fields are seeded by the upsert itself.
        on_insert = {k: v for k, v in document.items() if k not in key}
        created = False
        with _translate_errors("insert_if_absent", collection):
            try:
                if on_insert:
                    result = await coll.update_one(dict(key), {"$setOnInsert": on_insert}, upsert=True)
                    created = result.upserted_id is not None
                elif await coll.find_one(dict(key)) is None:
                    await coll.insert_one({**key})
                    created = True
            except DuplicateKeyError:
                # Lost a race against a concurrent insert of the same key.
                created = False
            stored = await coll.find_one(dict(key))
        if stored is None:
            raise StoreFailure(f"insert_if_absent on '{collection}' did not persist the document")
        return stored, created

    async def ensure_unique_index(self, collection: str, fields: Sequence[str]) -> None:
        with _translate_errors("create_index", collection):
            await self._db[collection].create_index([(f, ASCENDING) for f in fields], unique=True)

    async def create_doc(self, collection: str, document: Mapping[str, Any]) -> str:
        with _translate_errors("insert_one", collection):
            result = await self._db[collection].insert_one(dict(document))
        return str(result.inserted_id)

    async def create_docs(self, collection: str, documents: Sequence[Mapping[str, Any]]) -> int:
        if not documents:
            return 0
        with _translate_errors("insert_many", collection):
            result = await self._db[collection].insert_many([dict(d) for d in documents], ordered=False)
        return len(result.inserted_ids)

    async def update_doc(self, collection: str, record_id: str, changes: Mapping[str, Any]) -> int:
        with _translate_errors("update_one", collection):
            result = await self._db[collection].update_one(
                {"_id": coerce_object_id(record_id)},
                {"$set": dict(changes)},
            )
        return int(result.matched_count)

    async def update_docs(
        self,
        collection: str,
        record_ids: Sequence[str],
        changes: Sequence[Mapping[str, Any]],
    ) -> int:
        if not record_ids or not changes:
            return 0
        coll = self._db[collection]
        if len(changes) == 1:
            ids = [coerce_object_id(i) for i in record_ids]
            with _translate_errors("update_many", collection):
                result = await coll.update_many({"_id": {"$in": ids}}, {"$set": dict(changes[0])})
            return int(result.matched_count)

        if len(changes) != len(record_ids):
            logger.warning(
                "Batch update on %s pairs %d ids with %d payloads; unpaired entries are skipped",
                collection,
                len(record_ids),
                len(changes),
            )
        requests = [
            UpdateOne({"_id": coerce_object_id(record_id)}, {"$set": dict(change)})
            for record_id, change in zip(record_ids, changes)
        ]
        with _translate_errors("bulk_write", collection):
            result = await coll.bulk_write(requests, ordered=False)
        return int(result.matched_count)

    async def delete_doc(self, collection: str, record_id: str) -> int:
        with _translate_errors("delete_one", collection):
            result = await self._db[collection].delete_one({"_id": coerce_object_id(record_id)})
        return int(result.deleted_count)

    async def delete_docs(self, collection: str, record_ids: Sequence[str]) -> int:
        if not record_ids:
            return 0
        ids = [coerce_object_id(i) for i in record_ids]
        with _translate_errors("delete_many", collection):
            result = await self._db[collection].delete_many({"_id": {"$in": ids}})
        return int(result.deleted_count)

    async def close(self) -> None:
        self._db.client.close()
