from __future__ import annotations

import base64
import logging
from typing import Any, Dict, List, Optional, Tuple

import httpx

from ..errors import ExternalServiceError
from .http import VendorClient

log = logging.getLogger("integrations.github")


class GitHubClient(VendorClient):
    """The handful of REST v3 calls the agents make against one repository."""

    service = "github"

    def __init__(
        self,
        *,
        token: str,
        owner: str,
        repo: str,
        base_url: str = "https://api.github.com",
        timeout: float = 15.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        super().__init__(
            base_url=base_url,
            headers={
                "Authorization": f"Bearer {token}",
                "Accept": "application/vnd.github+json",
                "X-GitHub-Api-Version": "2022-11-28",
            },
            timeout=timeout,
            transport=transport,
        )
        self.owner = owner
        self.repo = repo

    @property
    def _repo_path(self) -> str:
        return f"/repos/{self.owner}/{self.repo}"

    def issue_url(self, number: int) -> str:
        return f"https://github.com/{self.owner}/{self.repo}/issues/{number}"

    async def create_issue(
        self,
        *,
        title: str,
        body: str,
        assignees: Optional[List[str]] = None,
        labels: Optional[List[str]] = None,
    ) -> int:
        resp = await self.request(
            "POST",
            f"{self._repo_path}/issues",
            json={"title": title, "body": body, "assignees": assignees or [], "labels": labels or []},
        )
        number = resp.json()["number"]
        log.info("Created GitHub issue #%s: %s", number, title)
        return number

    async def dispatch_workflow(self, workflow_id: str, *, ref: str, inputs: Dict[str, str]) -> None:
        await self.request(
            "POST",
            f"{self._repo_path}/actions/workflows/{workflow_id}/dispatches",
            json={"ref": ref, "inputs": inputs},
        )
        log.info("Dispatched workflow %s on %s inputs=%s", workflow_id, ref, inputs)

    async def get_branch_sha(self, branch: str) -> str:
        resp = await self.request("GET", f"{self._repo_path}/branches/{branch}")
        return resp.json()["commit"]["sha"]

    async def create_branch(self, branch: str, *, sha: str) -> None:
        await self.request("POST", f"{self._repo_path}/git/refs", json={"ref": f"refs/heads/{branch}", "sha": sha})

    async def get_file(self, path: str, *, ref: str) -> Optional[Tuple[bytes, str]]:
        """(content, blob sha) or None when the file does not exist on `ref`."""
        try:
            resp = await self.request("GET", f"{self._repo_path}/contents/{path}", params={"ref": ref})
        except ExternalServiceError as e:
            if e.status_code == 404:
                return None
            raise
        data = resp.json()
        return base64.b64decode(data.get("content", "")), data["sha"]

    async def put_file(
        self,
        path: str,
        *,
        content: bytes,
        message: str,
        branch: str,
        sha: Optional[str] = None,
    ) -> None:
        body: Dict[str, Any] = {
            "message": message,
            "content": base64.b64encode(content).decode("ascii"),
            "branch": branch,
        }
        if sha:
            body["sha"] = sha
        await self.request("PUT", f"{self._repo_path}/contents/{path}", json=body)

    async def create_pull_request(self, *, title: str, head: str, base: str, body: str) -> str:
        resp = await self.request(
            "POST",
            f"{self._repo_path}/pulls",
            json={"title": title, "head": head, "base": base, "body": body},
        )
        url = resp.json().get("html_url", "")
        log.info("Opened pull request %s", url)
        return url
