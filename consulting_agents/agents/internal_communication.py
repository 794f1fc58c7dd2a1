from __future__ import annotations

from typing import Any

from ..dal import Store
from ..events.envelope import DataProduct, InternalCommunication, unwrap_payload
from ..events.types import EventType, ProductName
from ..integrations import SlackClient
from ..metrics import MetricsSink
from ..runtime import Publisher
from .base import Agent


def compose_reply(message: str) -> str:
    text = message.lower()
    if "code review" in text:
        return "Great job on the code review!"
    if "update the documentation" in text:
        return "Will update the documentation by EOD."
    return "Acknowledged."


class InternalCommunicationAgent(Agent):
    name = "internal-communication"

    def __init__(self, *, store: Store, metrics: MetricsSink, publisher: Publisher, slack: SlackClient):
        super().__init__(store=store, metrics=metrics, publisher=publisher)
        self.slack = slack

    def handlers(self):
        return {
            EventType.INTERNAL_COMM_MESSAGE: self.handle_internal_message,
            EventType.CLIENT_EMAIL_RESPONSE: self.ignore,
        }

    async def handle_internal_message(self, data: Any) -> None:
        incoming = InternalCommunication.model_validate(unwrap_payload(data))
        self.log.info("Processing internal message from employee %s", incoming.employee_id)

        employee = await self.store.employees.get(incoming.employee_id)
        if not employee:
            self.log.warning("Employee %s not found in database", incoming.employee_id)
            return

        reply = compose_reply(incoming.message)
        await self.slack.post_message(f'Responded to {employee.get("name", incoming.employee_id)}: "{reply}"')

        product = DataProduct.create(
            ProductName.INTERNAL_COMMUNICATION,
            InternalCommunication(employee_id=incoming.employee_id, message=reply),
        )
        await self.publisher.publish_event(EventType.INTERNAL_COMM_RESPONSE, product.to_wire())
        self.log.info("Published internal_comm_response for employee %s", incoming.employee_id)

        self.metric("ai_agent.internal_communication.messages_processed", f"employee:{incoming.employee_id}")

    async def aclose(self) -> None:
        await self.slack.aclose()
