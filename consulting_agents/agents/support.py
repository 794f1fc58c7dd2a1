from __future__ import annotations

from typing import Any

from ..dal import Store
from ..events.envelope import SupportTicket, now_ms, unwrap_payload
from ..events.types import EventType
from ..integrations import ZendeskClient
from ..metrics import MetricsSink
from ..runtime import Publisher
from .base import Agent

RESOLVED = "resolved"


def resolution_text(ticket: SupportTicket) -> str:
    return f'Issue "{ticket.issue}" has been resolved. Thank you for contacting us.'


class SupportAgent(Agent):
    name = "support"

    def __init__(self, *, store: Store, metrics: MetricsSink, publisher: Publisher, zendesk: ZendeskClient):
        super().__init__(store=store, metrics=metrics, publisher=publisher)
        self.zendesk = zendesk

    def handlers(self):
        return {EventType.SUPPORT_TICKET_CREATED: self.handle_new_ticket}

    async def handle_new_ticket(self, data: Any) -> None:
        ticket = SupportTicket.model_validate(unwrap_payload(data))
        self.log.info("Handling support ticket %s from client %s", ticket.ticket_id, ticket.client_id)

        stored = await self.store.support.get(ticket.ticket_id)
        if stored and stored.get("status") == RESOLVED:
            self.log.info("Ticket %s already resolved; skipping", ticket.ticket_id)
            return

        resolution = resolution_text(ticket)
        # Zendesk close is idempotent
        await self.zendesk.close_ticket(ticket.ticket_id, comment=resolution)

        if not await self.store.support.set_status(ticket.ticket_id, RESOLVED):
            self.log.warning("Ticket %s not in store; recorded resolution only", ticket.ticket_id)

        created = await self.store.support.record_resolution(ticket.ticket_id, resolution, timestamp=now_ms())
        if created:
            self.metric("ai_agent.support.tickets_resolved", f"ticket:{ticket.ticket_id}")

    async def aclose(self) -> None:
        await self.zendesk.aclose()
