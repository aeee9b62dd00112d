"""Shared fixtures for the data gateway tests."""

from __future__ import annotations

import dataclasses

import pytest

from mozaiks_data.config.settings import Settings
from mozaiks_data.dispatcher import WriteDispatcher
from mozaiks_data.store.memory import InMemoryStoreAdapter

PLUGIN_ID = "p1"
ORGANIZATION_ID = "o1"


def make_settings(**overrides) -> Settings:
    base = Settings(
        env="test",
        store_backend="memory",
        database_uri="mongodb://localhost:27017",
        database_name="zuri_core_test",
        plugins_collection="plugins",
        organizations_collection="organization",
        plugin_collections_collection="plugin_collections",
        mongo_max_pool_size=10,
        mongo_min_pool_size=1,
        mongo_connect_timeout_ms=1000,
        mongo_server_selection_timeout_ms=1000,
        log_level="DEBUG",
        logs_as_json=False,
        logs_base_dir=None,
        max_request_body_bytes=1024 * 1024,
        cors_origins=(),
        host="127.0.0.1",
        port=8000,
    )
    return dataclasses.replace(base, **overrides)


@pytest.fixture()
def settings() -> Settings:
    return make_settings()


@pytest.fixture()
def store() -> InMemoryStoreAdapter:
    """In-memory store with plugin p1 and organization o1 present."""
    adapter = InMemoryStoreAdapter()
    adapter.seed("plugins", PLUGIN_ID, {"name": "notes-plugin"})
    adapter.seed("organization", ORGANIZATION_ID, {"name": "Acme"})
    return adapter


@pytest.fixture()
def dispatcher(settings: Settings, store: InMemoryStoreAdapter) -> WriteDispatcher:
    return WriteDispatcher(settings, store)
