from __future__ import annotations

import html
from typing import Any

from ..dal import Store
from ..events.envelope import Documentation, unwrap_payload
from ..events.types import EventType
from ..integrations import ConfluenceClient
from ..metrics import MetricsSink
from ..runtime import Publisher
from .base import Agent


def page_title(project_id: str) -> str:
    return f"Project Documentation: {project_id}"


class DocumentationAgent(Agent):
    name = "documentation"

    def __init__(self, *, store: Store, metrics: MetricsSink, publisher: Publisher, confluence: ConfluenceClient):
        super().__init__(store=store, metrics=metrics, publisher=publisher)
        self.confluence = confluence

    def handlers(self):
        return {
            EventType.DOCUMENTATION_UPDATE: self.handle_documentation_update,
            EventType.CLIENT_EMAIL_RESPONSE: self.ignore,
            EventType.PROJECT_MANAGEMENT_TASK_CREATED: self.ignore,
        }

    async def handle_documentation_update(self, data: Any) -> None:
        doc = Documentation.model_validate(unwrap_payload(data))
        self.log.info("Processing documentation update for project %s: %s", doc.project_id, doc.document_id)

        # Content is replaced wholesale on update
        action, page_id = await self.confluence.upsert_page(
            title=page_title(doc.project_id),
            html=f"<p>{html.escape(doc.content)}</p>",
        )
        self.log.info("Confluence page %s %s for project %s", page_id, action, doc.project_id)

        if not await self.store.documents.mark_processed(doc.document_id):
            self.log.warning("Document %s not in store; page updated anyway", doc.document_id)

        self.metric("ai_agent.documentation.documents_updated", f"project:{doc.project_id}")

    async def aclose(self) -> None:
        await self.confluence.aclose()
