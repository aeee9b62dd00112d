import pytest

from mozaiks_data.errors import InvalidPayloadShape
from mozaiks_data.validation import (
    BatchPayload,
    SinglePayload,
    build_payload,
    validate_object_ids,
    validate_shape,
)


def test_single_payload_must_be_object():
    validate_shape({"text": "hi"}, expect_bulk=False)
    for bad in ([{"text": "hi"}], "hi", 3, None):
        with pytest.raises(InvalidPayloadShape):
            validate_shape(bad, expect_bulk=False)


def test_bulk_payload_must_be_array_of_objects():
    validate_shape([{"a": 1}, {"b": 2}], expect_bulk=True)
    validate_shape([], expect_bulk=True)
    for bad in ({"a": 1}, "ab", None, 7):
        with pytest.raises(InvalidPayloadShape):
            validate_shape(bad, expect_bulk=True)


def test_bulk_payload_rejects_non_object_items():
    with pytest.raises(InvalidPayloadShape) as excinfo:
        validate_shape([{"a": 1}, "b"], expect_bulk=True)
    assert "item 1" in str(excinfo.value)


def test_object_ids_must_be_array_of_strings():
    assert validate_object_ids(["a", "b"]) == ["a", "b"]
    for bad in ("a", None, {"a": 1}, ["a", 2]):
        with pytest.raises(InvalidPayloadShape):
            validate_object_ids(bad)


def test_build_payload_picks_variant_from_bulk_flag():
    single = build_payload({"text": "hi"}, bulk=False)
    batch = build_payload([{"text": "a"}, {"text": "b"}], bulk=True)

    assert isinstance(single, SinglePayload)
    assert single.document == {"text": "hi"}
    assert isinstance(batch, BatchPayload)
    assert len(batch) == 2


def test_payload_variants_enforce_shape_on_construction():
    with pytest.raises(InvalidPayloadShape):
        SinglePayload(document=[{"a": 1}])  # type: ignore[arg-type]
    with pytest.raises(InvalidPayloadShape):
        BatchPayload(documents={"a": 1})  # type: ignore[arg-type]


def test_error_reports_stable_reason():
    with pytest.raises(InvalidPayloadShape) as excinfo:
        build_payload({"a": 1}, bulk=True)
    assert excinfo.value.reason == "invalid_payload_shape"
    assert excinfo.value.status_code == 422
