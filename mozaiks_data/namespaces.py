# mozaiks_data/namespaces.py
"""
Plugin collection namespaces.

A plugin addresses data by a logical collection name that only means
something inside its (plugin, organization) scope. The physical collection
is derived from the three key fields:

    <plugin_id>_<organization_id>_<collection_name>

``%`` and ``_`` inside the plugin and organization segments are
percent-escaped, which keeps the mapping injective: after escaping, the first
two separators can only come from the format itself. Ordinary ObjectId-style
ids pass through unchanged.

Computing a name and registering it are separate operations. Writes only need
the name; the registry record exists so a plugin's collections can be listed.
"""
from __future__ import annotations

import logging
from typing import List, Optional

from mozaiks_data.errors import InvalidDestination
from mozaiks_data.models import PLUGIN_COLLECTIONS_COLLECTION_NAME, NamespaceRecord, namespace_key
from mozaiks_data.store.base import StoreAdapter

logger = logging.getLogger("mozaiks_data.namespaces")

SEPARATOR = "_"
_FORBIDDEN_CHARS = ("$", "\x00")


def _escape_segment(value: str) -> str:
    return value.replace("%", "%25").replace(SEPARATOR, "%5F")


def _check_segment(label: str, value: str) -> None:
    if not value:
        raise InvalidDestination(f"invalid data destination: empty {label}")
    for ch in _FORBIDDEN_CHARS:
        if ch in value:
            raise InvalidDestination(f"invalid data destination: {label} contains {ch!r}")


def physical_name(plugin_id: str, organization_id: str, collection_name: str) -> str:
    """Deterministic physical collection name for a namespace triple. No I/O."""
    _check_segment("plugin_id", plugin_id)
    _check_segment("organization_id", organization_id)
    _check_segment("collection_name", collection_name)
    return SEPARATOR.join(
        (_escape_segment(plugin_id), _escape_segment(organization_id), collection_name)
    )


class NamespaceRegistry:
    """Sole writer of NamespaceRecord documents."""

    def __init__(self, store: StoreAdapter, collection: str = PLUGIN_COLLECTIONS_COLLECTION_NAME):
        self._store = store
        self._collection = collection

    @property
    def collection(self) -> str:
        return self._collection

    def physical_name(self, plugin_id: str, organization_id: str, collection_name: str) -> str:
        return physical_name(plugin_id, organization_id, collection_name)

    async def ensure_indexes(self) -> None:
        await self._store.ensure_unique_index(
            self._collection, ("plugin_id", "organization_id", "collection_name")
        )
        logger.info("✅ Ensured unique namespace index on %s", self._collection)

    async def get_record(
        self, plugin_id: str, organization_id: str, collection_name: str
    ) -> Optional[NamespaceRecord]:
        doc = await self._store.find_one(
            self._collection, namespace_key(plugin_id, organization_id, collection_name)
        )
        return NamespaceRecord.from_document(doc) if doc else None

    async def has_collection(self, plugin_id: str, organization_id: str, collection_name: str) -> bool:
        return await self.get_record(plugin_id, organization_id, collection_name) is not None

    async def register_collection(self, plugin_id: str, organization_id: str, collection_name: str) -> str:
        """Persist the namespace record if absent and return the physical name.

        Re-registering returns the stored mapping unchanged. Concurrent calls
        converge on a single record through the store's insert-if-absent.
        """
        record = NamespaceRecord(
            plugin_id=plugin_id,
            organization_id=organization_id,
            collection_name=collection_name,
            physical_collection_name=physical_name(plugin_id, organization_id, collection_name),
        )
        stored, created = await self._store.insert_if_absent(
            self._collection, record.key(), record.to_document()
        )
        if created:
            logger.info(
                "Registered collection %s for plugin %s in organization %s",
                collection_name,
                plugin_id,
                organization_id,
                extra={"physical_collection": record.physical_collection_name},
            )
        return str(stored.get("physical_collection_name") or record.physical_collection_name)

    async def list_collections(self, plugin_id: str, organization_id: str) -> List[NamespaceRecord]:
        docs = await self._store.find_many(
            self._collection, {"plugin_id": plugin_id, "organization_id": organization_id}
        )
        records = [NamespaceRecord.from_document(doc) for doc in docs]
        return sorted(records, key=lambda r: r.collection_name)
