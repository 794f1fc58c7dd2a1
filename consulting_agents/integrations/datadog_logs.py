from __future__ import annotations

import logging
from typing import Optional

import httpx

from .http import VendorClient

log = logging.getLogger("integrations.datadog")


class DatadogLogsClient(VendorClient):
    service = "datadog"

    def __init__(
        self,
        *,
        api_key: str,
        app_key: str,
        api_url: str = "https://api.datadoghq.com",
        timeout: float = 15.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        super().__init__(
            base_url=api_url,
            headers={"DD-API-KEY": api_key, "DD-APPLICATION-KEY": app_key},
            timeout=timeout,
            transport=transport,
        )

    async def has_recent_errors(self, *, window: str = "now-1h") -> bool:
        resp = await self.request(
            "POST",
            "/api/v2/logs/events/search",
            json={
                "filter": {"query": "status:error", "from": window, "to": "now"},
                "sort": "-timestamp",
                "page": {"limit": 1},
            },
        )
        found = len(resp.json().get("data", [])) > 0
        log.info("Datadog error logs in window %s: %s", window, "yes" if found else "no")
        return found
