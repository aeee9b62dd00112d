# mozaiks_data/store/base.py
"""
Document store contract consumed by the gateway core.

BOUNDARY CONTRACT:
- The core never talks to a driver directly; every read and write goes
  through a StoreAdapter
- Adapters translate driver errors into StoreUnavailable (retryable),
  StoreConflict (duplicate key) or StoreFailure
- Bulk operations are a single batch call; the adapter's own atomicity is
  inherited, nothing is added on top
"""
from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any, Dict, List, Mapping, Optional, Sequence, Tuple


class StoreAdapter(ABC):
    @abstractmethod
    async def ping(self) -> bool: ...

    @abstractmethod
    async def record_exists(self, collection: str, record_id: str) -> bool: ...

    @abstractmethod
    async def find_one(self, collection: str, query: Mapping[str, Any]) -> Optional[Dict[str, Any]]: ...

    @abstractmethod
    async def find_many(
        self,
        collection: str,
        query: Mapping[str, Any],
        *,
        limit: int = 0,
    ) -> List[Dict[str, Any]]: ...

    @abstractmethod
    async def insert_if_absent(
        self,
        collection: str,
        key: Mapping[str, Any],
        document: Mapping[str, Any],
    ) -> Tuple[Dict[str, Any], bool]:
        """Insert ``document`` unless a document matching ``key`` exists.

        Returns the stored document and whether this call created it.
        """

    @abstractmethod
    async def ensure_unique_index(self, collection: str, fields: Sequence[str]) -> None: ...

    @abstractmethod
    async def create_doc(self, collection: str, document: Mapping[str, Any]) -> str: ...

    @abstractmethod
    async def create_docs(self, collection: str, documents: Sequence[Mapping[str, Any]]) -> int: ...

    @abstractmethod
    async def update_doc(self, collection: str, record_id: str, changes: Mapping[str, Any]) -> int:
        """Apply ``changes`` to one record. Returns the matched count (0 or 1)."""

    @abstractmethod
    async def update_docs(
        self,
        collection: str,
        record_ids: Sequence[str],
        changes: Sequence[Mapping[str, Any]],
    ) -> int:
        """Batch update. Returns the matched count."""

    @abstractmethod
    async def delete_doc(self, collection: str, record_id: str) -> int: ...

    @abstractmethod
    async def delete_docs(self, collection: str, record_ids: Sequence[str]) -> int: ...

    async def close(self) -> None:
        return None
