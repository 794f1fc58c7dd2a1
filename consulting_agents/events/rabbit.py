# consulting_agents/events/rabbit.py
from __future__ import annotations

import logging
from typing import Any, Awaitable, Callable, Mapping, Optional

import aio_pika
from aio_pika import DeliveryMode, Message
from aio_pika.abc import AbstractChannel, AbstractIncomingMessage, AbstractQueue, AbstractRobustConnection

from ..errors import BrokerConnectionError
from .envelope import Envelope, encode
from .types import QUEUE_NAME, EventType

log = logging.getLogger("bus.rabbit")

MessageCallback = Callable[[AbstractIncomingMessage], Awaitable[Any]]


class BrokerClient:
    """
    One connection, one channel and one durable work queue per process.

    Publishing goes through the default exchange with the queue name as the
    routing key, so every agent shares the same physical queue.
    """

    def __init__(
        self,
        url: str,
        *,
        queue_name: str = QUEUE_NAME,
        prefetch_count: int = 1,
        connect_timeout: float = 10.0,
        connection_name: Optional[str] = None,
    ):
        self.url = url
        self.queue_name = queue_name
        self.prefetch_count = prefetch_count
        self.connect_timeout = connect_timeout
        self.connection_name = connection_name

        self._connection: Optional[AbstractRobustConnection] = None
        self._channel: Optional[AbstractChannel] = None
        self._queues: dict[str, AbstractQueue] = {}
        self._consumer_tag: Optional[str] = None

    @property
    def is_connected(self) -> bool:
        return self._channel is not None and not self._channel.is_closed

    async def connect(self) -> None:
        """Single attempt; raises BrokerConnectionError instead of retrying."""
        if self.is_connected:
            return
        try:
            log.info("Connecting to RabbitMQ ...")
            client_properties = {"connection_name": self.connection_name} if self.connection_name else None
            self._connection = await aio_pika.connect_robust(
                self.url,
                timeout=self.connect_timeout,
                client_properties=client_properties,
            )
            self._channel = await self._connection.channel()
            await self._channel.set_qos(prefetch_count=self.prefetch_count)
        except Exception as e:
            self._connection = None
            self._channel = None
            raise BrokerConnectionError(f"cannot connect to broker: {e}") from e
        log.info("RabbitMQ connection ready (prefetch=%d)", self.prefetch_count)

    def _require_channel(self) -> AbstractChannel:
        if self._channel is None or self._channel.is_closed:
            raise BrokerConnectionError("broker channel is not open; call connect() first")
        return self._channel

    async def declare_queue(self, name: Optional[str] = None, *, durable: bool = True) -> AbstractQueue:
        """Idempotent: redeclaring with the same arguments is a no-op on the broker."""
        name = name or self.queue_name
        channel = self._require_channel()
        queue = await channel.declare_queue(name, durable=durable, auto_delete=False)
        self._queues[name] = queue
        log.info("Declared queue '%s' (durable=%s)", name, durable)
        return queue

    async def publish(
        self,
        envelope: Envelope,
        *,
        persistent: bool = True,
        queue_name: Optional[str] = None,
        headers: Optional[Mapping[str, Any]] = None,
    ) -> None:
        """Fire and forget; returns once the broker has the message, not when it is consumed."""
        channel = self._require_channel()
        routing_key = queue_name or self.queue_name
        msg = Message(
            encode(envelope),
            content_type="application/json",
            delivery_mode=DeliveryMode.PERSISTENT if persistent else DeliveryMode.NOT_PERSISTENT,
            headers=dict(headers or {}),
        )
        await channel.default_exchange.publish(msg, routing_key=routing_key)
        log.info("Published %s to '%s'", envelope.type, routing_key)

    async def publish_event(self, event_type: EventType | str, data: Any = None) -> None:
        await self.publish(Envelope.of(event_type, data))

    async def publish_raw(
        self,
        body: bytes,
        *,
        queue_name: str,
        headers: Optional[Mapping[str, Any]] = None,
    ) -> None:
        """Republish an undecoded body as-is (retries and dead-lettering)."""
        channel = self._require_channel()
        msg = Message(
            body,
            content_type="application/json",
            delivery_mode=DeliveryMode.PERSISTENT,
            headers=dict(headers or {}),
        )
        await channel.default_exchange.publish(msg, routing_key=queue_name)

    async def consume(self, callback: MessageCallback) -> str:
        """Register the process's single consumer on the shared queue; manual ack."""
        if self._consumer_tag is not None:
            raise RuntimeError("a consumer is already registered on this client")
        queue = self._queues.get(self.queue_name) or await self.declare_queue()
        self._consumer_tag = await queue.consume(callback, no_ack=False)
        log.info("Starting consumption on queue '%s'", queue.name)
        return self._consumer_tag

    async def cancel(self) -> None:
        """Stop new deliveries; in-flight messages stay with the caller."""
        if self._consumer_tag is None:
            return
        queue = self._queues.get(self.queue_name)
        tag, self._consumer_tag = self._consumer_tag, None
        if queue is not None and self.is_connected:
            try:
                await queue.cancel(tag)
            except Exception as e:
                log.warning("Error cancelling consumer %s: %s", tag, e)

    async def close(self) -> None:
        await self.cancel()
        try:
            if self._channel and not self._channel.is_closed:
                await self._channel.close()
        except Exception as e:
            log.warning("Error closing channel: %s", e)

        try:
            if self._connection and not self._connection.is_closed:
                await self._connection.close()
        except Exception as e:
            log.warning("Error closing connection: %s", e)

        self._channel = None
        self._connection = None
        self._queues.clear()
        log.info("RabbitMQ connection closed")


__all__ = ["BrokerClient", "MessageCallback"]
