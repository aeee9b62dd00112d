import asyncio

import pytest

from mozaiks_data.errors import InvalidDestination, StoreFailure
from mozaiks_data.namespaces import NamespaceRegistry, physical_name
from mozaiks_data.store.memory import InMemoryStoreAdapter


def test_physical_name_is_deterministic():
    first = physical_name("p1", "o1", "notes")
    assert first == physical_name("p1", "o1", "notes")
    assert first == "p1_o1_notes"


def test_object_id_style_ids_pass_through_unchanged():
    name = physical_name("61695d8bb2cc8a9af4833d46", "6145eee9285e4a18402074cd", "tasks")
    assert name == "61695d8bb2cc8a9af4833d46_6145eee9285e4a18402074cd_tasks"


def test_separator_in_ids_does_not_collide():
    triples = [
        ("a_b", "c", "d"),
        ("a", "b_c", "d"),
        ("a", "b", "c_d"),
        ("a%5Fb", "c", "d"),
        ("a", "b", "c"),
    ]
    names = {physical_name(*t) for t in triples}
    assert len(names) == len(triples)


def test_distinct_plugins_get_distinct_collections():
    assert physical_name("p1", "o1", "notes") != physical_name("p2", "o1", "notes")
    assert physical_name("p1", "o1", "notes") != physical_name("p1", "o2", "notes")


@pytest.mark.parametrize(
    "triple",
    [("p1", "o1", ""), ("", "o1", "notes"), ("p1", "", "notes"), ("p1", "o1", "no$tes"), ("p1", "o1", "a\x00b")],
)
def test_unaddressable_triples_are_rejected(triple):
    with pytest.raises(InvalidDestination):
        physical_name(*triple)


@pytest.mark.asyncio
async def test_register_collection_is_idempotent():
    store = InMemoryStoreAdapter()
    registry = NamespaceRegistry(store)

    names = [await registry.register_collection("p1", "o1", "notes") for _ in range(3)]

    assert names == ["p1_o1_notes"] * 3
    assert len(store.documents("plugin_collections")) == 1


@pytest.mark.asyncio
async def test_concurrent_registration_converges_on_one_record():
    store = InMemoryStoreAdapter()
    registry = NamespaceRegistry(store)

    names = await asyncio.gather(*(registry.register_collection("p1", "o1", "notes") for _ in range(5)))

    assert set(names) == {"p1_o1_notes"}
    assert len(store.documents("plugin_collections")) == 1


@pytest.mark.asyncio
async def test_has_collection_reflects_registration():
    registry = NamespaceRegistry(InMemoryStoreAdapter())

    assert not await registry.has_collection("p1", "o1", "notes")
    await registry.register_collection("p1", "o1", "notes")
    assert await registry.has_collection("p1", "o1", "notes")
    assert not await registry.has_collection("p1", "o2", "notes")


@pytest.mark.asyncio
async def test_registered_record_keeps_its_physical_name():
    store = InMemoryStoreAdapter()
    registry = NamespaceRegistry(store)
    await registry.register_collection("p1", "o1", "notes")

    record = await registry.get_record("p1", "o1", "notes")

    assert record is not None
    assert record.physical_collection_name == "p1_o1_notes"
    assert record.created_at.tzinfo is not None


@pytest.mark.asyncio
async def test_list_collections_is_scoped_and_sorted():
    registry = NamespaceRegistry(InMemoryStoreAdapter())
    for name in ("tasks", "notes"):
        await registry.register_collection("p1", "o1", name)
    await registry.register_collection("p1", "o2", "other")
    await registry.register_collection("p2", "o1", "foreign")

    records = await registry.list_collections("p1", "o1")

    assert [r.collection_name for r in records] == ["notes", "tasks"]


@pytest.mark.asyncio
async def test_ensure_indexes_declares_composite_unique_key():
    store = InMemoryStoreAdapter()
    await NamespaceRegistry(store, "custom_namespaces").ensure_indexes()

    call = store.calls[-1]
    assert call.operation == "create_index"
    assert call.collection == "custom_namespaces"
    assert call.args["fields"] == ("plugin_id", "organization_id", "collection_name")


@pytest.mark.asyncio
async def test_register_surfaces_store_failure():
    store = InMemoryStoreAdapter()
    store.fail_with["insert_if_absent"] = StoreFailure("boom")

    with pytest.raises(StoreFailure):
        await NamespaceRegistry(store).register_collection("p1", "o1", "notes")
