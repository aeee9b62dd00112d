# mozaiks_data/store/loader.py
from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from motor.motor_asyncio import AsyncIOMotorClient

from mozaiks_data.config.database import create_mongo_client, get_database
from mozaiks_data.config.settings import Settings, StoreBackend
from mozaiks_data.store.base import StoreAdapter
from mozaiks_data.store.memory import InMemoryStoreAdapter
from mozaiks_data.store.mongo import MotorStoreAdapter


@dataclass(frozen=True)
class StoreBundle:
    mode: StoreBackend
    store: StoreAdapter
    client: Optional[AsyncIOMotorClient] = None


def load_store(settings: Settings) -> StoreBundle:
    """Return the MongoDB adapter, or the in-memory one for self-hosted dev."""
    if settings.store_backend == "memory":
        store = InMemoryStoreAdapter()
        for plugin_id in settings.memory_seed_plugins:
            store.seed(settings.plugins_collection, plugin_id)
        for organization_id in settings.memory_seed_organizations:
            store.seed(settings.organizations_collection, organization_id)
        return StoreBundle(mode="memory", store=store)

    client = create_mongo_client(settings)
    return StoreBundle(
        mode="mongo",
        store=MotorStoreAdapter(get_database(client, settings)),
        client=client,
    )
