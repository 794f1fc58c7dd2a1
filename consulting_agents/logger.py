from __future__ import annotations

import contextvars
import logging

from .settings import settings

LOG_FORMAT = "%(asctime)s | %(levelname)s | %(name)s | agent=%(agent)s event=%(event_type)s | %(message)s"

agent_var = contextvars.ContextVar("agent", default="-")
event_type_var = contextvars.ContextVar("event_type", default="-")


class AgentContextFilter(logging.Filter):
    """Stamps every record with the running agent and the event being handled."""

    def filter(self, record: logging.LogRecord) -> bool:
        record.agent = agent_var.get()
        record.event_type = event_type_var.get()
        return True


def setup_logging(agent: str | None = None) -> None:
    if agent:
        agent_var.set(agent)

    logging.basicConfig(
        level=getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO),
        format=LOG_FORMAT,
    )

    # Filters on handlers so third-party loggers (aio_pika, uvicorn, httpx) get the fields too
    ctx_filter = AgentContextFilter()
    for handler in logging.getLogger().handlers:
        if not any(isinstance(f, AgentContextFilter) for f in handler.filters):
            handler.addFilter(ctx_filter)


__all__ = ["setup_logging", "AgentContextFilter", "agent_var", "event_type_var", "LOG_FORMAT"]
