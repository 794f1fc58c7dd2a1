from __future__ import annotations

from datetime import datetime
from typing import Any, Dict, List, Optional

from ..dal import Store, task_id_from_description
from ..events.envelope import ClientCommunication, ProjectManagement, now_ms, unwrap_payload
from ..events.types import EventType
from ..integrations import JiraClient
from ..metrics import MetricsSink
from ..runtime import Publisher
from ..scheduling import ScheduledTrigger
from .base import Agent

DAY_MS = 86_400_000
PROJECT_MANAGER = "employee-004"


def issue_to_entry(issue: Dict[str, Any]) -> ProjectManagement:
    """Map a Jira search hit onto the project-management record."""
    fields = issue.get("fields") or {}
    assignee = fields.get("assignee") or {}
    due = fields.get("duedate")
    deadline = (
        int(datetime.fromisoformat(due).timestamp() * 1000) if due else now_ms() + 7 * DAY_MS
    )
    return ProjectManagement(
        project_id=(fields.get("project") or {}).get("key", ""),
        task=fields.get("summary", ""),
        assigned_to=assignee.get("displayName") or "Unassigned",
        status=(fields.get("status") or {}).get("name", ""),
        deadline=deadline,
    )


class ProjectManagementAgent(Agent):
    name = "project-management"

    def __init__(
        self,
        *,
        store: Store,
        metrics: MetricsSink,
        publisher: Publisher,
        jira: JiraClient,
        sync_interval_seconds: Optional[int] = 3600,
    ):
        super().__init__(store=store, metrics=metrics, publisher=publisher)
        self.jira = jira
        self.sync_interval_seconds = sync_interval_seconds

    def handlers(self):
        return {
            EventType.CLIENT_EMAIL_RECEIVED: self.handle_client_email,
            EventType.CLIENT_EMAIL_RESPONSE: self.ignore,
        }

    def schedules(self) -> List[ScheduledTrigger]:
        if not self.sync_interval_seconds:
            return []
        return [ScheduledTrigger("jira-sync", self.sync_interval_seconds, self.sync_project_updates)]

    async def handle_client_email(self, data: Any) -> None:
        comm = ClientCommunication.model_validate(unwrap_payload(data))
        self.log.info("Processing client email from %s", comm.client_id)

        if "meeting scheduled" in comm.message.lower():
            await self.create_follow_up_task(comm.client_id, comm.message)

    async def create_follow_up_task(self, client_id: str, message: str) -> str:
        summary = f"Follow-up Meeting with Client {client_id}"
        key = await self.jira.create_task(
            summary=summary,
            description=f"A meeting has been scheduled with client {client_id}. Details: {message}",
        )

        entry = ProjectManagement(
            project_id=self.jira.project_key,
            task=summary,
            assigned_to=PROJECT_MANAGER,
            status="To Do",
            deadline=now_ms() + 14 * DAY_MS,
        )
        await self.store.project_management.record(entry, timestamp=now_ms())
        self.metric("ai_agent.project_management.tasks_created", f"project:{self.jira.project_key}")
        self.log.info("Created Jira task %s for client %s", key, client_id)
        return key

    async def sync_project_updates(self) -> int:
        """Scheduled: pull recently changed Jira issues into the task table."""
        self.log.info("Fetching project updates from Jira...")
        issues = await self.jira.search_recent_status_changes()

        for issue in issues:
            entry = issue_to_entry(issue)
            self.log.info("Updating task for project %s: %s", entry.project_id, entry.task)
            await self.store.tasks.upsert_tracking(
                task_id_from_description(entry.task),
                project_id=entry.project_id,
                description=entry.task,
                assigned_to=entry.assigned_to,
                status=entry.status,
                deadline=entry.deadline,
            )
            await self.store.project_management.record(entry, timestamp=now_ms())
            self.metric("ai_agent.project_management.tasks_updated", f"project:{entry.project_id}")

        self.log.info("Project management tasks updated (%d issues)", len(issues))
        return len(issues)

    async def aclose(self) -> None:
        await self.jira.aclose()
