from __future__ import annotations

import logging
from typing import Optional

import httpx

from ..errors import ExternalServiceError
from .http import VendorClient

log = logging.getLogger("integrations.slack")


class SlackClient(VendorClient):
    service = "slack"

    def __init__(
        self,
        *,
        token: str,
        channel_id: str,
        timeout: float = 15.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        super().__init__(
            base_url="https://slack.com/api",
            headers={"Authorization": f"Bearer {token}"},
            timeout=timeout,
            transport=transport,
        )
        self.channel_id = channel_id

    async def post_message(self, text: str) -> None:
        resp = await self.request("POST", "/chat.postMessage", json={"channel": self.channel_id, "text": text})
        # Slack reports most failures as 200 with ok=false
        data = resp.json()
        if not data.get("ok", False):
            raise ExternalServiceError(self.service, f"chat.postMessage: {data.get('error', 'unknown_error')}")
        log.info("Sent Slack message: %s", text)
