from __future__ import annotations

from typing import Optional


class AgentBusError(Exception):
    """Base class for every error raised by the agent bus."""


class BrokerConnectionError(AgentBusError):
    """The broker could not be reached. Fatal at startup."""


class DecodeError(AgentBusError):
    """Message body is not a well-formed envelope."""


class ConfigurationError(AgentBusError):
    """An agent is missing settings it cannot run without."""


class HandlerError(AgentBusError):
    """A handler failed while orchestrating its side effects."""


class SchemaVersionError(HandlerError):
    def __init__(self, name: str, expected: str, actual: str):
        super().__init__(f"{name}: unsupported schemaVersion {actual!r} (expected {expected}.x)")
        self.name = name
        self.expected = expected
        self.actual = actual


class ExternalServiceError(HandlerError):
    def __init__(self, service: str, message: str, *, status_code: Optional[int] = None):
        super().__init__(f"{service}: {message}")
        self.service = service
        self.status_code = status_code


__all__ = [
    "AgentBusError",
    "BrokerConnectionError",
    "DecodeError",
    "ConfigurationError",
    "HandlerError",
    "SchemaVersionError",
    "ExternalServiceError",
]
