from .envelope import DataProduct, Envelope, decode, encode, unwrap_payload
from .rabbit import BrokerClient
from .types import QUEUE_NAME, SCHEMA_VERSION, EventType, ProductName, event_name

__all__ = [
    "BrokerClient",
    "DataProduct",
    "Envelope",
    "EventType",
    "ProductName",
    "QUEUE_NAME",
    "SCHEMA_VERSION",
    "decode",
    "encode",
    "event_name",
    "unwrap_payload",
]
