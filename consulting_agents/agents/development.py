from __future__ import annotations

from typing import Any

from ..dal import Store, task_id_from_description
from ..events.envelope import ProjectManagement, unwrap_payload
from ..events.types import EventType
from ..integrations import GitHubClient
from ..metrics import MetricsSink
from ..runtime import Publisher
from .base import Agent


class DevelopmentAgent(Agent):
    name = "development"

    def __init__(self, *, store: Store, metrics: MetricsSink, publisher: Publisher, github: GitHubClient):
        super().__init__(store=store, metrics=metrics, publisher=publisher)
        self.github = github

    def handlers(self):
        return {EventType.PROJECT_MANAGEMENT_TASK_CREATED: self.handle_project_task}

    async def handle_project_task(self, data: Any) -> None:
        task = ProjectManagement.model_validate(unwrap_payload(data))
        self.log.info("Handling new task for project %s: %s", task.project_id, task.task)

        number = await self.github.create_issue(
            title=task.task,
            body=f"Assigned to {task.assigned_to}",
            assignees=[task.assigned_to],
            labels=["development"],
        )
        self.metric("ai_agent.development.issues_created", f"issue:{number}")

        task_id = task_id_from_description(task.task)
        found = await self.store.tasks.set_repository(
            task_id,
            repository_url=self.github.issue_url(number),
            status="in-progress",
        )
        if not found:
            self.log.warning("Task %s not in store; issue #%s created anyway", task_id, number)
        self.metric("ai_agent.development.tasks_updated", f"task:{task_id}", "status:in-progress")

    async def aclose(self) -> None:
        await self.github.aclose()
