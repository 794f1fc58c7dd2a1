from __future__ import annotations

import logging
from typing import Any, Dict, List

from ..dal import Store
from ..events.types import EventType
from ..metrics import MetricsSink
from ..runtime import Handler, Publisher
from ..scheduling import ScheduledTrigger


class Agent:
    """
    One business capability: a dispatch table of event handlers plus optional
    scheduled jobs. Agents never talk to each other except through `publisher`.
    """

    name = "agent"

    def __init__(self, *, store: Store, metrics: MetricsSink, publisher: Publisher):
        self.store = store
        self.metrics = metrics
        self.publisher = publisher
        self.log = logging.getLogger(f"agents.{self.name}")

    def handlers(self) -> Dict[EventType | str, Handler]:
        return {}

    def schedules(self) -> List[ScheduledTrigger]:
        return []

    def metric(self, metric: str, *tags: str, value: float = 1) -> None:
        self.metrics.send(metric, value, [f"agent:{self.name}", *tags])

    async def ignore(self, data: Any) -> None:
        """Registered for event types this agent acknowledges but has no work for."""
        self.log.debug("Nothing to do for this event")

    async def aclose(self) -> None:
        """Release vendor clients; agents holding any override this."""
