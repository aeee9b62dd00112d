import pytest

from mozaiks_data.dispatcher import WriteDispatcher
from mozaiks_data.errors import (
    InvalidDestination,
    InvalidPayloadShape,
    NotFound,
    StoreFailure,
    StoreUnavailable,
)
from mozaiks_data.models import OperationKind, WriteRequest

PHYSICAL = "p1_o1_notes"


def _request(**overrides) -> WriteRequest:
    data = {
        "plugin_id": "p1",
        "organization_id": "o1",
        "collection_name": "notes",
        "operation": OperationKind.CREATE,
        "bulk_write": False,
        "payload": {"text": "hi"},
    }
    data.update(overrides)
    return WriteRequest.model_validate(data)


@pytest.mark.asyncio
async def test_create_one_registers_namespace_and_inserts(dispatcher, store):
    result = await dispatcher.dispatch(_request())

    assert result.count == 1
    assert result.status_code == 201
    assert result.to_data() == {"insert_count": 1}
    assert result.physical_collection == PHYSICAL

    records = store.documents("plugin_collections")
    assert len(records) == 1
    assert records[0]["physical_collection_name"] == PHYSICAL
    docs = store.documents(PHYSICAL)
    assert [d["text"] for d in docs] == ["hi"]


@pytest.mark.asyncio
async def test_missing_plugin_fails_before_any_mutation(dispatcher, store):
    with pytest.raises(NotFound) as excinfo:
        await dispatcher.dispatch(_request(plugin_id="ghost"))

    assert excinfo.value.reason == "plugin_not_found"
    assert excinfo.value.status_code == 404
    assert store.mutations == []


@pytest.mark.asyncio
async def test_missing_organization_fails_without_registration(dispatcher, store):
    with pytest.raises(NotFound) as excinfo:
        await dispatcher.dispatch(_request(organization_id="nowhere"))

    assert excinfo.value.reason == "organization_not_found"
    assert store.mutations == []
    assert store.documents("plugin_collections") == []


@pytest.mark.asyncio
async def test_bulk_create_with_object_payload_is_rejected(dispatcher, store):
    with pytest.raises(InvalidPayloadShape):
        await dispatcher.dispatch(_request(bulk_write=True, payload={"text": "hi"}))

    assert store.mutations == []
    assert store.documents("plugin_collections") == []


@pytest.mark.asyncio
async def test_single_create_with_array_payload_is_rejected(dispatcher, store):
    with pytest.raises(InvalidPayloadShape):
        await dispatcher.dispatch(_request(payload=[{"text": "hi"}]))
    assert store.mutations == []


@pytest.mark.asyncio
async def test_bulk_create_inserts_whole_batch_in_one_call(dispatcher, store):
    result = await dispatcher.dispatch(
        _request(bulk_write=True, payload=[{"text": "a"}, {"text": "b"}, {"text": "c"}])
    )

    assert result.count == 3
    batch_calls = [c for c in store.mutations if c.operation == "create_docs"]
    assert len(batch_calls) == 1
    assert len(store.documents(PHYSICAL)) == 3


@pytest.mark.asyncio
async def test_update_with_empty_collection_name_is_invalid_destination(dispatcher, store):
    with pytest.raises(InvalidDestination) as excinfo:
        await dispatcher.dispatch(_request(operation=OperationKind.UPDATE, collection_name="", object_id="x"))

    assert excinfo.value.status_code == 400
    assert store.mutations == []


@pytest.mark.asyncio
async def test_update_one_reports_matched_count(dispatcher, store):
    store.seed(PHYSICAL, "n1", {"text": "old"})

    hit = await dispatcher.dispatch(
        _request(operation=OperationKind.UPDATE, object_id="n1", payload={"text": "new"})
    )
    miss = await dispatcher.dispatch(
        _request(operation=OperationKind.UPDATE, object_id="missing", payload={"text": "new"})
    )

    assert hit.to_data() == {"update_count": 1}
    assert hit.status_code == 200
    assert miss.count == 0
    assert store.documents(PHYSICAL)[0]["text"] == "new"


@pytest.mark.asyncio
async def test_update_one_requires_object_id(dispatcher, store):
    with pytest.raises(InvalidDestination):
        await dispatcher.dispatch(_request(operation=OperationKind.UPDATE, payload={"text": "new"}))
    assert store.mutations == []


@pytest.mark.asyncio
async def test_bulk_update_hands_mismatched_batch_to_store_as_is(dispatcher, store):
    for record_id in ("a", "b", "c"):
        store.seed(PHYSICAL, record_id, {"text": "old"})

    result = await dispatcher.dispatch(
        _request(
            operation=OperationKind.UPDATE,
            bulk_write=True,
            object_ids=["a", "b", "c"],
            payload=[{"text": "A"}, {"text": "B"}],
        )
    )

    (call,) = [c for c in store.mutations if c.operation == "update_docs"]
    assert call.args["record_ids"] == ["a", "b", "c"]
    assert len(call.args["changes"]) == 2
    assert result.count == 2


@pytest.mark.asyncio
async def test_bulk_update_requires_id_array(dispatcher, store):
    with pytest.raises(InvalidPayloadShape):
        await dispatcher.dispatch(
            _request(operation=OperationKind.UPDATE, bulk_write=True, object_ids="a", payload=[{"x": 1}])
        )
    assert store.mutations == []


@pytest.mark.asyncio
async def test_delete_of_absent_record_is_not_an_error(dispatcher, store):
    result = await dispatcher.dispatch(_request(operation=OperationKind.DELETE, object_id="nope", payload=None))

    assert result.to_data() == {"delete_count": 0}
    assert result.status_code == 200


@pytest.mark.asyncio
async def test_bulk_delete_counts_deleted_records(dispatcher, store):
    store.seed(PHYSICAL, "a")
    store.seed(PHYSICAL, "b")

    result = await dispatcher.dispatch(
        _request(operation=OperationKind.DELETE, bulk_write=True, object_ids=["a", "b", "zzz"], payload=None)
    )

    assert result.count == 2
    assert store.documents(PHYSICAL) == []


@pytest.mark.asyncio
async def test_registration_failure_does_not_block_write(dispatcher, store):
    store.fail_with["insert_if_absent"] = StoreFailure("registry down")

    result = await dispatcher.dispatch(_request())

    assert result.count == 1
    assert store.documents("plugin_collections") == []
    assert len(store.documents(PHYSICAL)) == 1


@pytest.mark.asyncio
async def test_known_namespace_is_not_registered_again(dispatcher, store):
    await dispatcher.dispatch(_request())
    await dispatcher.dispatch(_request(payload={"text": "again"}))

    registrations = [c for c in store.calls if c.operation == "insert_if_absent"]
    assert len(registrations) == 1
    assert len(store.documents(PHYSICAL)) == 2


@pytest.mark.asyncio
async def test_store_failure_on_write_propagates(dispatcher, store):
    store.fail_with["create_doc"] = StoreUnavailable("down")

    with pytest.raises(StoreUnavailable):
        await dispatcher.dispatch(_request())


@pytest.mark.asyncio
async def test_unreachable_store_during_existence_check_propagates(dispatcher, store):
    store.fail_with["record_exists"] = StoreUnavailable("down")

    with pytest.raises(StoreUnavailable):
        await dispatcher.dispatch(_request())
    assert store.mutations == []


@pytest.mark.asyncio
async def test_custom_collection_names_come_from_settings(settings, store):
    from dataclasses import replace

    store.seed("zc_plugins", "p9")
    custom = WriteDispatcher(replace(settings, plugins_collection="zc_plugins"), store)

    result = await custom.dispatch(_request(plugin_id="p9"))

    assert result.physical_collection == "p9_o1_notes"
