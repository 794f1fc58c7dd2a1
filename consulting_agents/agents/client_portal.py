from __future__ import annotations

import logging
import uuid

from ..dal import Store
from ..events.envelope import now_ms
from ..events.types import EventType
from ..metrics import MetricsSink
from ..runtime import Publisher

log = logging.getLogger("agents.client-portal")


class ClientPortal:
    """
    Intake for new project requests. Publish-only: it puts
    new_project_request on the bus and consumes nothing.
    """

    name = "client-portal"

    def __init__(self, *, store: Store, metrics: MetricsSink, publisher: Publisher):
        self.store = store
        self.metrics = metrics
        self.publisher = publisher

    async def submit_request(self, *, client_email: str, title: str, description: str) -> str:
        client = await self.store.clients.get_by_email(client_email)
        if client:
            client_id = client["_id"]
        else:
            client_id = f"client-{uuid.uuid4()}"
            await self.store.clients.create(client_id=client_id, name=client_email.split("@")[0], email=client_email)
            log.info("Registered new client %s", client_id)

        project_id = f"project-{uuid.uuid4()}"
        await self.store.projects.create(
            project_id=project_id,
            client_id=client_id,
            name=title,
            description=description,
        )

        await self.publisher.publish_event(
            EventType.NEW_PROJECT_REQUEST,
            {
                "projectId": project_id,
                "clientId": client_id,
                "projectTitle": title,
                "projectDescription": description,
                "timestamp": now_ms(),
            },
        )
        log.info("Published new_project_request for project %s", project_id)

        self.metrics.send(
            "ai_agent.client_portal.requests_submitted",
            1,
            [f"agent:{self.name}", f"project:{project_id}"],
        )
        return project_id
