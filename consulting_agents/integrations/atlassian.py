from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional, Tuple

import httpx

from .http import VendorClient

log = logging.getLogger("integrations.atlassian")


class JiraClient(VendorClient):
    service = "jira"

    def __init__(
        self,
        *,
        base_url: str,
        email: str,
        api_token: str,
        project_key: str,
        timeout: float = 15.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        super().__init__(
            base_url=base_url.rstrip("/"),
            auth=(email, api_token),
            headers={"Content-Type": "application/json"},
            timeout=timeout,
            transport=transport,
        )
        self.project_key = project_key

    async def create_task(self, *, summary: str, description: str) -> str:
        # v2 accepts plain-text descriptions; v3 wants ADF documents
        resp = await self.request(
            "POST",
            "/rest/api/2/issue",
            json={
                "fields": {
                    "project": {"key": self.project_key},
                    "summary": summary,
                    "description": description,
                    "issuetype": {"name": "Task"},
                }
            },
        )
        key = resp.json()["key"]
        log.info("Created Jira task %s: %s", key, summary)
        return key

    async def search_recent_status_changes(self, *, since: str = "-1h") -> List[Dict[str, Any]]:
        resp = await self.request(
            "GET",
            "/rest/api/2/search",
            params={
                "jql": f"project = {self.project_key} AND status changed AFTER {since}",
                "fields": "summary,assignee,status,duedate,project",
            },
        )
        return resp.json().get("issues", [])


class ConfluenceClient(VendorClient):
    service = "confluence"

    def __init__(
        self,
        *,
        base_url: str,
        email: str,
        api_token: str,
        space_key: str = "DEV",
        timeout: float = 15.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        super().__init__(
            base_url=base_url.rstrip("/"),
            auth=(email, api_token),
            headers={"Content-Type": "application/json"},
            timeout=timeout,
            transport=transport,
        )
        self.space_key = space_key

    async def find_page(self, title: str) -> Optional[Dict[str, Any]]:
        resp = await self.request(
            "GET",
            "/rest/api/content",
            params={"title": title, "spaceKey": self.space_key, "expand": "version"},
        )
        results = resp.json().get("results", [])
        return results[0] if results else None

    async def upsert_page(self, *, title: str, html: str) -> Tuple[str, str]:
        """Create the page or bump its version with new content. Returns (action, page id)."""
        body = {"storage": {"value": html, "representation": "storage"}}
        page = await self.find_page(title)
        if page is None:
            resp = await self.request(
                "POST",
                "/rest/api/content",
                json={"type": "page", "title": title, "space": {"key": self.space_key}, "body": body},
            )
            page_id = str(resp.json().get("id", ""))
            log.info("Created Confluence page '%s' (%s)", title, page_id)
            return "created", page_id

        page_id = str(page["id"])
        version = int(page.get("version", {}).get("number", 0)) + 1
        await self.request(
            "PUT",
            f"/rest/api/content/{page_id}",
            json={
                "id": page_id,
                "type": "page",
                "title": title,
                "space": {"key": self.space_key},
                "body": body,
                "version": {"number": version},
            },
        )
        log.info("Updated Confluence page '%s' (%s) to version %d", title, page_id, version)
        return "updated", page_id
