# mozaiks_data/models.py
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, Mapping, Optional

from pydantic import BaseModel, ConfigDict, StrictBool, field_validator

PLUGIN_COLLECTION_NAME = "plugins"
ORGANIZATION_COLLECTION_NAME = "organization"
PLUGIN_COLLECTIONS_COLLECTION_NAME = "plugin_collections"

# Record classes checked before every write.
PLUGIN_RECORD = "plugin"
ORGANIZATION_RECORD = "organization"


class OperationKind(str, Enum):
    """Write intent, selected at the boundary from the HTTP method."""
    CREATE = "create"
    UPDATE = "update"
    DELETE = "delete"

    @classmethod
    def from_http_method(cls, method: str) -> "OperationKind":
        mapping = {"POST": cls.CREATE, "PUT": cls.UPDATE, "DELETE": cls.DELETE}
        try:
            return mapping[method.upper()]
        except KeyError:
            raise ValueError(f"Unsupported write method: {method}") from None


class WriteRequest(BaseModel):
    """One logical write intent as received from a plugin.

    ``object_ids`` and ``payload`` stay untyped on purpose: their shape is the
    payload validator's concern, so a wrong shape is reported as
    ``invalid_payload_shape`` and not as an unparseable body.
    """

    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    plugin_id: str
    organization_id: str
    collection_name: str = ""
    bulk_write: StrictBool = False
    object_id: Optional[str] = None
    object_ids: Any = None
    payload: Any = None
    operation: OperationKind = OperationKind.CREATE

    @field_validator("collection_name", mode="before")
    @classmethod
    def _null_collection(cls, value: Any) -> Any:
        # null and a missing key both mean "no destination".
        return "" if value is None else value

    @field_validator("plugin_id", "organization_id", "collection_name", mode="after")
    @classmethod
    def _strip(cls, value: str) -> str:
        return value.strip()


@dataclass(frozen=True)
class NamespaceRecord:
    plugin_id: str
    organization_id: str
    collection_name: str
    physical_collection_name: str
    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    def key(self) -> Dict[str, str]:
        return namespace_key(self.plugin_id, self.organization_id, self.collection_name)

    def to_document(self) -> Dict[str, Any]:
        return {
            **self.key(),
            "physical_collection_name": self.physical_collection_name,
            "created_at": self.created_at,
        }

    @classmethod
    def from_document(cls, doc: Mapping[str, Any]) -> "NamespaceRecord":
        created_at = doc.get("created_at")
        if not isinstance(created_at, datetime):
            created_at = datetime.now(timezone.utc)
        return cls(
            plugin_id=str(doc["plugin_id"]),
            organization_id=str(doc["organization_id"]),
            collection_name=str(doc["collection_name"]),
            physical_collection_name=str(doc["physical_collection_name"]),
            created_at=created_at,
        )


def namespace_key(plugin_id: str, organization_id: str, collection_name: str) -> Dict[str, str]:
    return {
        "plugin_id": plugin_id,
        "organization_id": organization_id,
        "collection_name": collection_name,
    }


_COUNT_KEYS = {
    OperationKind.CREATE: "insert_count",
    OperationKind.UPDATE: "update_count",
    OperationKind.DELETE: "delete_count",
}


@dataclass(frozen=True)
class WriteResult:
    operation: OperationKind
    count: int
    physical_collection: str

    @property
    def count_key(self) -> str:
        return _COUNT_KEYS[self.operation]

    @property
    def status_code(self) -> int:
        return 201 if self.operation is OperationKind.CREATE else 200

    def to_data(self) -> Dict[str, int]:
        return {self.count_key: self.count}
