from __future__ import annotations

import base64
import logging
import time
from email.message import EmailMessage
from typing import Any, Dict, Optional

import httpx

from ..errors import ExternalServiceError
from .http import VendorClient

log = logging.getLogger("integrations.google")

TOKEN_URL = "https://oauth2.googleapis.com/token"
GMAIL_SEND_URL = "https://gmail.googleapis.com/gmail/v1/users/me/messages/send"
CALENDAR_EVENTS_URL = "https://www.googleapis.com/calendar/v3/calendars/{calendar_id}/events"


class GoogleWorkspaceClient(VendorClient):
    """Gmail send + Calendar insert, authorized with a long-lived OAuth refresh token."""

    service = "google"

    def __init__(
        self,
        *,
        client_id: str,
        client_secret: str,
        refresh_token: str,
        calendar_id: str = "primary",
        sender: str,
        timeout: float = 15.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        super().__init__(timeout=timeout, transport=transport)
        self.client_id = client_id
        self.client_secret = client_secret
        self.refresh_token = refresh_token
        self.calendar_id = calendar_id
        self.sender = sender

        self._access_token: Optional[str] = None
        self._expires_at = 0.0

    async def _token(self) -> str:
        if self._access_token and time.time() < self._expires_at - 60:
            return self._access_token
        resp = await self.request(
            "POST",
            TOKEN_URL,
            data={
                "client_id": self.client_id,
                "client_secret": self.client_secret,
                "refresh_token": self.refresh_token,
                "grant_type": "refresh_token",
            },
        )
        data = resp.json()
        token = data.get("access_token")
        if not token:
            raise ExternalServiceError(self.service, "token endpoint returned no access_token")
        self._access_token = token
        self._expires_at = time.time() + int(data.get("expires_in", 3600))
        return token

    async def send_email(self, to: str, subject: str, text: str, html: Optional[str] = None) -> None:
        msg = EmailMessage()
        msg["From"] = f"No Reply <{self.sender}>"
        msg["To"] = to
        msg["Subject"] = subject
        msg.set_content(text)
        if html:
            msg.add_alternative(html, subtype="html")

        raw = base64.urlsafe_b64encode(msg.as_bytes()).decode("ascii")
        token = await self._token()
        await self.request("POST", GMAIL_SEND_URL, json={"raw": raw}, headers={"Authorization": f"Bearer {token}"})
        log.info("Email sent to %s: %s", to, subject)

    async def create_calendar_event(self, event: Dict[str, Any]) -> str:
        token = await self._token()
        resp = await self.request(
            "POST",
            CALENDAR_EVENTS_URL.format(calendar_id=self.calendar_id),
            params={"sendUpdates": "all"},
            json=event,
            headers={"Authorization": f"Bearer {token}"},
        )
        link = resp.json().get("htmlLink", "")
        log.info("Calendar event created: %s", link)
        return link
