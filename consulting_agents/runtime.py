from __future__ import annotations

import asyncio
import logging
from enum import Enum
from typing import Any, Awaitable, Callable, Mapping, Optional, Protocol, Sequence

from aio_pika.abc import AbstractIncomingMessage
from pydantic import ValidationError

from .errors import BrokerConnectionError, DecodeError, SchemaVersionError
from .events.envelope import Envelope, decode
from .events.rabbit import BrokerClient
from .events.types import EventType, event_name
from .logger import event_type_var
from .scheduling import ScheduledTrigger

log = logging.getLogger("bus.runtime")

RETRY_HEADER = "x-retry-count"


class AgentState(str, Enum):
    STARTING = "starting"
    CONNECTED = "connected"
    CONSUMING = "consuming"
    SHUTTING_DOWN = "shutting_down"
    STOPPED = "stopped"
    CRASHED = "crashed"


class HandlerOutcome(str, Enum):
    ACK = "ack"
    RETRY = "retry"
    DEAD_LETTER = "dead_letter"


# A handler receives the envelope's `data` and may return an explicit outcome; None means ACK.
Handler = Callable[[Any], Awaitable[Optional[HandlerOutcome]]]


class Publisher(Protocol):
    async def publish_event(self, event_type: EventType | str, data: Any = None) -> None:
        ...


# Payload problems that no amount of redelivery will fix
PERMANENT_ERRORS = (ValidationError, SchemaVersionError, KeyError, TypeError)


class AgentRuntime:
    """
    Per-process harness: connect once, declare the shared queue, dispatch each
    delivery by event type, one message at a time.

    Settlement of handled messages depends on `failure_policy`:
      - "retry": failed work is requeued with an attempt counter and moved to
        the dead-letter queue once `max_retries` is exhausted.
      - "ack": failures are logged and the message is acked (dropped).
    Undecodable and unhandled messages are always acked.
    """

    def __init__(
        self,
        name: str,
        broker: BrokerClient,
        handlers: Mapping[EventType | str, Handler],
        *,
        handler_timeout: Optional[float] = 120.0,
        max_retries: int = 3,
        failure_policy: str = "retry",
        dead_letter_queue: str = "agent_communication.dead_letter",
        triggers: Sequence[ScheduledTrigger] = (),
    ):
        if failure_policy not in ("retry", "ack"):
            raise ValueError(f"unknown failure policy: {failure_policy!r}")
        self.name = name
        self.broker = broker
        self.handlers: dict[str, Handler] = {event_name(k): v for k, v in handlers.items()}
        self.handler_timeout = handler_timeout
        self.max_retries = max_retries
        self.failure_policy = failure_policy
        self.dead_letter_queue = dead_letter_queue
        self.triggers = list(triggers)

        self.state = AgentState.STARTING
        self._stop_event = asyncio.Event()
        self._inflight = asyncio.Lock()

    # ----------------- Lifecycle -----------------

    async def start(self) -> None:
        """STARTING -> CONNECTED -> CONSUMING. Raises BrokerConnectionError (state CRASHED)."""
        self.state = AgentState.STARTING
        self._stop_event.clear()
        try:
            await self.broker.connect()
        except BrokerConnectionError:
            self.state = AgentState.CRASHED
            log.error("Agent %s could not reach the broker; giving up", self.name)
            raise
        self.state = AgentState.CONNECTED

        await self.broker.declare_queue(durable=True)
        if self.failure_policy == "retry":
            await self.broker.declare_queue(self.dead_letter_queue, durable=True)

        await self.broker.consume(self.handle_message)
        self.state = AgentState.CONSUMING
        for trigger in self.triggers:
            trigger.start()
        log.info("Agent %s consuming; handles %s", self.name, sorted(self.handlers) or "nothing")

    async def run(self) -> None:
        await self.start()
        await self._stop_event.wait()
        await self.shutdown()

    def stop(self) -> None:
        self._stop_event.set()

    async def shutdown(self) -> None:
        if self.state in (AgentState.STOPPED, AgentState.CRASHED):
            return
        self.state = AgentState.SHUTTING_DOWN
        self._stop_event.set()
        log.info("Agent %s shutting down", self.name)

        await self.broker.cancel()
        for trigger in self.triggers:
            await trigger.stop()
        # Let the in-flight handler finish before the channel goes away
        async with self._inflight:
            await self.broker.close()
        self.state = AgentState.STOPPED
        log.info("Agent %s stopped", self.name)

    # ----------------- Delivery -----------------

    async def handle_message(self, message: AbstractIncomingMessage) -> None:
        async with self._inflight:
            if self.state in (AgentState.SHUTTING_DOWN, AgentState.STOPPED):
                await message.nack(requeue=True)
                return

            try:
                envelope = decode(message.body)
            except DecodeError as e:
                log.error("Dropping undecodable message: %s", e)
                await message.ack()
                return

            token = event_type_var.set(envelope.type)
            try:
                handler = self.handlers.get(envelope.type)
                if handler is None:
                    log.info("Unhandled event type: %s", envelope.type)
                    await message.ack()
                    return

                outcome = await self._invoke(handler, envelope)
                await self._settle(message, envelope, outcome)
            finally:
                event_type_var.reset(token)

    async def _invoke(self, handler: Handler, envelope: Envelope) -> HandlerOutcome:
        try:
            outcome = await asyncio.wait_for(handler(envelope.data), timeout=self.handler_timeout)
        except asyncio.TimeoutError:
            log.error("Handler for %s timed out after %ss", envelope.type, self.handler_timeout)
            return HandlerOutcome.RETRY
        except PERMANENT_ERRORS as e:
            log.exception("Handler for %s rejected its payload: %s", envelope.type, e)
            return HandlerOutcome.DEAD_LETTER
        except Exception as e:
            log.exception("Handler for %s failed: %s", envelope.type, e)
            return HandlerOutcome.RETRY
        return outcome or HandlerOutcome.ACK

    async def _settle(self, message: AbstractIncomingMessage, envelope: Envelope, outcome: HandlerOutcome) -> None:
        if outcome is HandlerOutcome.ACK:
            await message.ack()
            return

        if self.failure_policy == "ack":
            log.warning("Dropping failed %s (failure policy 'ack')", envelope.type)
            await message.ack()
            return

        attempts = _retry_count(message)
        try:
            if outcome is HandlerOutcome.RETRY and attempts < self.max_retries:
                log.warning("Requeueing %s (attempt %d of %d)", envelope.type, attempts + 1, self.max_retries)
                await self.broker.publish_raw(
                    message.body,
                    queue_name=self.broker.queue_name,
                    headers={RETRY_HEADER: attempts + 1},
                )
            else:
                log.error("Dead-lettering %s after %d retries", envelope.type, attempts)
                await self.broker.publish_raw(
                    message.body,
                    queue_name=self.dead_letter_queue,
                    headers={
                        RETRY_HEADER: attempts,
                        "x-dead-letter-reason": outcome.value,
                        "x-failed-agent": self.name,
                    },
                )
        except Exception as e:
            # Could not hand the message on; requeue the original
            log.exception("Republish of %s failed, requeueing original: %s", envelope.type, e)
            await message.nack(requeue=True)
            return
        await message.ack()


def _retry_count(message: AbstractIncomingMessage) -> int:
    headers = message.headers or {}
    try:
        return int(headers.get(RETRY_HEADER, 0))
    except (TypeError, ValueError):
        return 0


__all__ = ["AgentRuntime", "AgentState", "HandlerOutcome", "Handler", "Publisher", "RETRY_HEADER"]
