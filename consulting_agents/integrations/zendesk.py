from __future__ import annotations

import logging
from typing import Optional

import httpx

from .http import VendorClient

log = logging.getLogger("integrations.zendesk")


class ZendeskClient(VendorClient):
    service = "zendesk"

    def __init__(
        self,
        *,
        subdomain: str,
        email: str,
        api_token: str,
        timeout: float = 15.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        super().__init__(
            base_url=f"https://{subdomain}.zendesk.com/api/v2",
            auth=(f"{email}/token", api_token),
            timeout=timeout,
            transport=transport,
        )

    async def close_ticket(self, ticket_id: str, *, comment: str) -> None:
        await self.request(
            "PUT",
            f"/tickets/{ticket_id}.json",
            json={"ticket": {"status": "closed", "comment": {"body": comment}}},
        )
        log.info("Closed Zendesk ticket %s", ticket_id)
