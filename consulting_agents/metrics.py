from __future__ import annotations

import logging
from typing import Optional, Protocol, Sequence

from datadog.dogstatsd import DogStatsd

log = logging.getLogger("bus.metrics")


class MetricsSink(Protocol):
    def send(self, metric: str, value: float, tags: Optional[Sequence[str]] = None) -> None:
        ...


class DogStatsdMetrics:
    """Fire-and-forget gauges over UDP to the Datadog agent."""

    def __init__(self, *, host: str, port: int, service: str):
        self._client = DogStatsd(host=host, port=port, constant_tags=[f"service:{service}"])

    def send(self, metric: str, value: float, tags: Optional[Sequence[str]] = None) -> None:
        try:
            self._client.gauge(metric, value, tags=list(tags or []))
        except Exception as e:
            # Metrics must never fail a handler
            log.warning("metric %s not sent: %s", metric, e)
            return
        log.debug("metric %s=%s tags=%s", metric, value, list(tags or []))

    def close(self) -> None:
        self._client.close_socket()


__all__ = ["MetricsSink", "DogStatsdMetrics"]
