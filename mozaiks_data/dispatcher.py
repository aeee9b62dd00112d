# mozaiks_data/dispatcher.py
"""
Write dispatch for plugin data.

Each request runs a strictly linear pipeline; the first failing stage ends it
with a typed error and nothing after it runs:

1. plugin exists
2. organization exists
3. destination is addressable (physical name computable, ids present)
4. payload / object_ids shape matches the bulk flag
5. namespace registration (best effort, failures are only logged)
6. exactly one store call (single record or one batch)

Stages 1-4 issue no writes, so a rejected request never leaves a namespace
record or a partial mutation behind.
"""
from __future__ import annotations

import logging
from typing import Awaitable, Callable, Optional

from mozaiks_data.config.settings import Settings
from mozaiks_data.errors import InvalidDestination, NotFound
from mozaiks_data.existence import ExistenceChecker
from mozaiks_data.logs.logging_config import ContextLogger, get_request_logger, log_operation
from mozaiks_data.models import (
    ORGANIZATION_RECORD,
    PLUGIN_RECORD,
    OperationKind,
    WriteRequest,
    WriteResult,
)
from mozaiks_data.namespaces import NamespaceRegistry, physical_name
from mozaiks_data.store.base import StoreAdapter
from mozaiks_data.validation import BatchPayload, build_payload, validate_object_ids

logger = logging.getLogger("mozaiks_data.dispatcher")

StoreCall = Callable[[], Awaitable[int]]


class WriteDispatcher:
    def __init__(
        self,
        settings: Settings,
        store: StoreAdapter,
        *,
        existence: Optional[ExistenceChecker] = None,
        registry: Optional[NamespaceRegistry] = None,
    ):
        self._settings = settings
        self._store = store
        self._existence = existence or ExistenceChecker(store)
        self._registry = registry or NamespaceRegistry(store, settings.plugin_collections_collection)

    @property
    def registry(self) -> NamespaceRegistry:
        return self._registry

    async def dispatch(self, request: WriteRequest, *, correlation_id: str | None = None) -> WriteResult:
        log = get_request_logger(
            request.plugin_id,
            request.organization_id,
            request.collection_name,
            base_logger=logger,
            correlation_id=correlation_id,
        )

        if not await self._existence.exists(self._settings.plugins_collection, request.plugin_id):
            raise NotFound(PLUGIN_RECORD, request.plugin_id)
        if not await self._existence.exists(self._settings.organizations_collection, request.organization_id):
            raise NotFound(ORGANIZATION_RECORD, request.organization_id)

        if request.operation is OperationKind.UPDATE and (not request.collection_name or not request.plugin_id):
            raise InvalidDestination()
        collection = physical_name(request.plugin_id, request.organization_id, request.collection_name)

        store_call = self._prepare(request, collection)

        await self._ensure_registered(request, log)

        op_name = f"{request.operation.value}{'_many' if request.bulk_write else '_one'}"
        with log_operation(log, op_name, physical_collection=collection):
            count = await store_call()

        return WriteResult(operation=request.operation, count=count, physical_collection=collection)

    # ------------------------------------------------------------------
    # Routing
    # ------------------------------------------------------------------
    def _prepare(self, request: WriteRequest, collection: str) -> StoreCall:
        """Validate shape for operation x bulk and bind the single store call."""
        if request.operation is OperationKind.CREATE:
            return self._prepare_create(request, collection)
        if request.operation is OperationKind.UPDATE:
            return self._prepare_update(request, collection)
        return self._prepare_delete(request, collection)

    def _prepare_create(self, request: WriteRequest, collection: str) -> StoreCall:
        payload = build_payload(request.payload, request.bulk_write)
        if isinstance(payload, BatchPayload):
            documents = payload.documents
            return lambda: self._store.create_docs(collection, documents)

        document = payload.document

        async def insert_one() -> int:
            await self._store.create_doc(collection, document)
            return 1

        return insert_one

    def _prepare_update(self, request: WriteRequest, collection: str) -> StoreCall:
        if request.bulk_write:
            record_ids = validate_object_ids(request.object_ids)
            payload = build_payload(request.payload, True)
            # ids and payloads are handed over as-is; their lengths are not cross-checked.
            changes = payload.documents
            return lambda: self._store.update_docs(collection, record_ids, changes)

        record_id = _require_object_id(request)
        changes = build_payload(request.payload, False).document
        return lambda: self._store.update_doc(collection, record_id, changes)

    def _prepare_delete(self, request: WriteRequest, collection: str) -> StoreCall:
        if request.bulk_write:
            record_ids = validate_object_ids(request.object_ids)
            return lambda: self._store.delete_docs(collection, record_ids)

        record_id = _require_object_id(request)
        return lambda: self._store.delete_doc(collection, record_id)

    # ------------------------------------------------------------------
    # Namespace bookkeeping
    # ------------------------------------------------------------------
    async def _ensure_registered(self, request: WriteRequest, log: ContextLogger) -> None:
        try:
            if not await self._registry.has_collection(
                request.plugin_id, request.organization_id, request.collection_name
            ):
                await self._registry.register_collection(
                    request.plugin_id, request.organization_id, request.collection_name
                )
        except Exception as exc:
            # The physical name is already known, so the write goes ahead.
            log.exception("Namespace registration failed: %s", exc)


def _require_object_id(request: WriteRequest) -> str:
    object_id = (request.object_id or "").strip()
    if not object_id:
        raise InvalidDestination(f"invalid data destination: object_id is required for {request.operation.value}")
    return object_id
