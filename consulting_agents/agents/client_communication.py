from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Optional

from ..dal import Store
from ..events.envelope import ClientCommunication, DataProduct, unwrap_payload
from ..events.types import EventType, ProductName
from ..integrations import GoogleWorkspaceClient, SlackClient
from ..metrics import MetricsSink
from ..runtime import Publisher
from .base import Agent

MEETING_REQUEST = "meeting_request"
GENERAL_INQUIRY = "general_inquiry"

MEETING_TIMEZONE = "America/Los_Angeles"

INQUIRY_SUBJECT = "Re: Your Inquiry"
INQUIRY_REPLY = "Thank you for reaching out. We have received your message and will get back to you shortly."
MEETING_SUBJECT = "Meeting Scheduled"
MEETING_REPLY = "Your meeting has been scheduled. Please check your Google Calendar for details."


def categorize_message(message: str) -> str:
    text = message.lower()
    if "schedule a meeting" in text or "call" in text:
        return MEETING_REQUEST
    return GENERAL_INQUIRY


def kickoff_meeting(attendee: str, *, now: Optional[datetime] = None) -> Dict[str, Any]:
    """Calendar event body: one hour, same time tomorrow."""
    start = (now or datetime.now(timezone.utc)) + timedelta(days=1)
    end = start + timedelta(hours=1)
    return {
        "summary": "Project Kickoff Meeting",
        "location": "Google Meet",
        "description": "Initial meeting to discuss project requirements and timelines.",
        "start": {"dateTime": start.isoformat(), "timeZone": MEETING_TIMEZONE},
        "end": {"dateTime": end.isoformat(), "timeZone": MEETING_TIMEZONE},
        "attendees": [{"email": attendee}],
        "reminders": {
            "useDefault": False,
            "overrides": [
                {"method": "email", "minutes": 24 * 60},
                {"method": "popup", "minutes": 10},
            ],
        },
    }


class ClientCommunicationAgent(Agent):
    """
    Client-facing mail. Inbound mail arrives over the Gmail webhook and is put
    on the bus; the handler then answers it (reply or meeting invite).
    """

    name = "client-communication"

    def __init__(
        self,
        *,
        store: Store,
        metrics: MetricsSink,
        publisher: Publisher,
        google: GoogleWorkspaceClient,
        slack: SlackClient,
    ):
        super().__init__(store=store, metrics=metrics, publisher=publisher)
        self.google = google
        self.slack = slack

    def handlers(self):
        return {EventType.CLIENT_EMAIL_RECEIVED: self.handle_client_email}

    # ----------------- Inbound webhook -----------------

    async def receive_inbound_email(self, *, sender: str, subject: str, body: str) -> Optional[str]:
        """Publish client_email_received for a known client. Returns the client id, or None if unknown."""
        self.log.info("Received email from %s: %s", sender, subject)
        client = await self.store.clients.get_by_email(sender)
        if not client:
            self.log.info("Client with email %s not found", sender)
            return None

        client_id = client["_id"]
        product = DataProduct.create(
            ProductName.CLIENT_COMMUNICATION,
            ClientCommunication(client_id=client_id, message=body),
        )
        await self.publisher.publish_event(EventType.CLIENT_EMAIL_RECEIVED, product.to_wire())
        self.log.info("Published client_email_received for client %s", client_id)
        return client_id

    # ----------------- Bus handler -----------------

    async def handle_client_email(self, data: Any) -> None:
        comm = ClientCommunication.model_validate(unwrap_payload(data))
        self.log.info("Processing communication from client %s", comm.client_id)

        email = await self.store.clients.get_email(comm.client_id)
        if not email:
            self.log.warning("Client %s not found in database", comm.client_id)
            return

        if categorize_message(comm.message) == MEETING_REQUEST:
            await self._schedule_meeting(comm.client_id, email)
        else:
            await self._answer_inquiry(comm.client_id, email)

    async def _answer_inquiry(self, client_id: str, email: str) -> None:
        await self.google.send_email(email, INQUIRY_SUBJECT, INQUIRY_REPLY)
        await self.slack.post_message(f'Responded to {client_id}: "{INQUIRY_SUBJECT}"')
        await self._publish_response(client_id, INQUIRY_REPLY)
        self.metric("ai_agent.client_communication.messages_processed", f"client:{client_id}")

    async def _schedule_meeting(self, client_id: str, email: str) -> None:
        await self.google.create_calendar_event(kickoff_meeting(email))
        await self.google.send_email(email, MEETING_SUBJECT, MEETING_REPLY)
        await self.slack.post_message(f"Scheduled a meeting with client {client_id}.")
        await self._publish_response(client_id, MEETING_REPLY)
        self.metric("ai_agent.client_communication.meetings_scheduled", f"client:{client_id}")

    async def _publish_response(self, client_id: str, message: str) -> None:
        product = DataProduct.create(
            ProductName.CLIENT_COMMUNICATION,
            ClientCommunication(client_id=client_id, message=message),
        )
        await self.publisher.publish_event(EventType.CLIENT_EMAIL_RESPONSE, product.to_wire())
        self.log.info("Published client_email_response for client %s", client_id)

    async def aclose(self) -> None:
        await self.google.aclose()
        await self.slack.aclose()
