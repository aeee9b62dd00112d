# mozaiks_data/validation.py
"""
Structural payload checks.

Only the container shape is checked (object vs. list of objects); payload
contents are never inspected or coerced.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, List, Mapping, Sequence, Union

from mozaiks_data.errors import InvalidPayloadShape


def _type_name(value: Any) -> str:
    if value is None:
        return "null"
    if isinstance(value, Mapping):
        return "object"
    if isinstance(value, (list, tuple)):
        return "array"
    return type(value).__name__


def _is_sequence(value: Any) -> bool:
    # str/bytes are sequences to Python but never a valid batch.
    return isinstance(value, Sequence) and not isinstance(value, (str, bytes, bytearray))


def validate_shape(payload: Any, expect_bulk: bool) -> None:
    if expect_bulk:
        if not _is_sequence(payload):
            raise InvalidPayloadShape(f"bulk payload must be an array, got {_type_name(payload)}")
        for index, item in enumerate(payload):
            if not isinstance(item, Mapping):
                raise InvalidPayloadShape(
                    f"bulk payload item {index} must be an object, got {_type_name(item)}"
                )
        return

    if not isinstance(payload, Mapping):
        raise InvalidPayloadShape(f"payload must be an object, got {_type_name(payload)}")


def validate_object_ids(object_ids: Any) -> List[str]:
    if not _is_sequence(object_ids):
        raise InvalidPayloadShape(f"object_ids must be an array, got {_type_name(object_ids)}")
    for index, item in enumerate(object_ids):
        if not isinstance(item, str):
            raise InvalidPayloadShape(f"object_ids item {index} must be a string, got {_type_name(item)}")
    return list(object_ids)


@dataclass(frozen=True)
class SinglePayload:
    document: Dict[str, Any]

    def __post_init__(self) -> None:
        validate_shape(self.document, expect_bulk=False)


@dataclass(frozen=True)
class BatchPayload:
    documents: List[Dict[str, Any]]

    def __post_init__(self) -> None:
        validate_shape(self.documents, expect_bulk=True)

    def __len__(self) -> int:
        return len(self.documents)


Payload = Union[SinglePayload, BatchPayload]


def build_payload(payload: Any, bulk: bool) -> Payload:
    """Wrap a raw payload in the variant selected by the bulk flag."""
    if bulk:
        validate_shape(payload, expect_bulk=True)
        return BatchPayload(documents=[dict(item) for item in payload])
    validate_shape(payload, expect_bulk=False)
    return SinglePayload(document=dict(payload))


__all__ = [
    "validate_shape",
    "validate_object_ids",
    "SinglePayload",
    "BatchPayload",
    "Payload",
    "build_payload",
]
