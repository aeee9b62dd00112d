# mozaiks_data/existence.py
from __future__ import annotations

import logging

from mozaiks_data.store.base import StoreAdapter

logger = logging.getLogger("mozaiks_data.existence")


class ExistenceChecker:
    """Live lookup of a record by primary id. No caching.

    ``False`` means the record is absent. An unreachable store raises
    ``StoreUnavailable`` instead, so callers never mistake an outage for a
    missing plugin or organization.
    """

    def __init__(self, store: StoreAdapter):
        self._store = store

    async def exists(self, record_class: str, record_id: str | None) -> bool:
        if not record_id or not record_id.strip():
            return False
        found = await self._store.record_exists(record_class, record_id.strip())
        if not found:
            logger.debug("No %s record with id %s", record_class, record_id)
        return found
