# consulting_agents/events/envelope.py
from __future__ import annotations

import time
from typing import Any, Optional

import orjson
from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from ..errors import DecodeError, SchemaVersionError
from .types import SCHEMA_VERSION, EventType, ProductName, event_name


def now_ms() -> int:
    return int(time.time() * 1000)


class Envelope(BaseModel):
    """
    The unit carried on the queue: {"type": "<event_type>", "data": {...}}.

    `type` is kept as a plain string so that event kinds this build does not
    know about still decode; dispatch decides whether anyone cares.
    """
    model_config = ConfigDict(frozen=True)

    type: str
    data: Any = None

    @classmethod
    def of(cls, event_type: EventType | str, data: Any = None) -> "Envelope":
        if isinstance(data, BaseModel):
            data = data.model_dump(by_alias=True, mode="json")
        return cls(type=event_name(event_type), data=data)


class DataProduct(BaseModel):
    """Typed, versioned business record nested in an envelope's `data`."""
    model_config = ConfigDict(populate_by_name=True, frozen=True)

    name: str
    schema_version: str = Field(alias="schemaVersion")
    timestamp: int
    payload: Any = None

    @classmethod
    def create(cls, name: ProductName | str, payload: Any) -> "DataProduct":
        if isinstance(payload, BaseModel):
            payload = payload.model_dump(by_alias=True, mode="json")
        product = name.value if isinstance(name, ProductName) else str(name)
        return cls(name=product, schemaVersion=SCHEMA_VERSION, timestamp=now_ms(), payload=payload)

    def to_wire(self) -> dict[str, Any]:
        return self.model_dump(by_alias=True, mode="json")

    def check_version(self, supported: str = SCHEMA_VERSION) -> None:
        """Same major version is readable; anything else is refused."""
        expected_major = supported.split(".", 1)[0]
        actual_major = self.schema_version.split(".", 1)[0]
        if actual_major != expected_major:
            raise SchemaVersionError(self.name, expected_major, self.schema_version)


def is_data_product(data: Any) -> bool:
    return isinstance(data, dict) and {"name", "schemaVersion", "payload"} <= data.keys()


def unwrap_payload(data: Any) -> Any:
    """
    Return the record inside `data`.

    Producers are not consistent: some publish a data product, others the bare
    record. A data product is version-checked before its payload is trusted.
    """
    if not is_data_product(data):
        return data
    product = DataProduct.model_validate(data)
    product.check_version()
    return product.payload


# --- Codec --------------------------------------------------------------------

def encode(envelope: Envelope) -> bytes:
    return orjson.dumps(envelope.model_dump(mode="json"))


def decode(body: bytes) -> Envelope:
    try:
        obj = orjson.loads(body)
    except orjson.JSONDecodeError as e:
        raise DecodeError(f"body is not valid JSON: {e}") from e

    if not isinstance(obj, dict):
        raise DecodeError(f"envelope must be a JSON object, got {type(obj).__name__}")
    if "type" not in obj:
        raise DecodeError("envelope has no 'type' field")
    if not isinstance(obj["type"], str):
        raise DecodeError(f"envelope 'type' must be a string, got {type(obj['type']).__name__}")

    return Envelope(type=obj["type"], data=obj.get("data"))


# --- Record contracts -----------------------------------------------------------

class Record(BaseModel):
    """Camel-cased on the wire, snake_cased in Python."""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="allow")


class ClientCommunication(Record):
    client_id: str
    message: str
    timestamp: int = Field(default_factory=now_ms)


class ProjectManagement(Record):
    project_id: str
    task: str
    assigned_to: str
    status: str
    deadline: Optional[int] = None


class DevelopmentTask(Record):
    task_id: str
    description: Optional[str] = None
    assigned_to: Optional[str] = None
    status: Optional[str] = None
    repository_url: Optional[str] = None


class TestingResult(Record):
    __test__ = False  # not a pytest class

    task_id: str
    test_id: Optional[str] = None
    passed: Optional[bool] = None
    timestamp: int = Field(default_factory=now_ms)


class DeploymentInfo(Record):
    deployment_id: str
    task_id: str
    environment: str
    status: str
    timestamp: int = Field(default_factory=now_ms)


class InternalCommunication(Record):
    employee_id: str
    message: str
    timestamp: int = Field(default_factory=now_ms)


class Documentation(Record):
    document_id: str
    project_id: str
    content: str
    timestamp: int = Field(default_factory=now_ms)


class SupportTicket(Record):
    ticket_id: str
    client_id: Optional[str] = None
    issue: str
    status: Optional[str] = None
    timestamp: int = Field(default_factory=now_ms)


class MonitoringAlert(Record):
    alert_type: str
    details: Any = None


__all__ = [
    "Envelope",
    "DataProduct",
    "encode",
    "decode",
    "now_ms",
    "is_data_product",
    "unwrap_payload",
    "Record",
    "ClientCommunication",
    "ProjectManagement",
    "DevelopmentTask",
    "TestingResult",
    "DeploymentInfo",
    "InternalCommunication",
    "Documentation",
    "SupportTicket",
    "MonitoringAlert",
]
