from __future__ import annotations

import uuid
from typing import Any

from ..dal import Store
from ..events.envelope import DeploymentInfo, TestingResult, unwrap_payload
from ..events.types import EventType
from ..integrations import GitHubClient, SlackClient
from ..metrics import MetricsSink
from ..runtime import Publisher
from .base import Agent


class DeploymentAgent(Agent):
    """Ships tasks whose tests passed; alerts the team when they did not."""

    name = "deployment"

    def __init__(
        self,
        *,
        store: Store,
        metrics: MetricsSink,
        publisher: Publisher,
        github: GitHubClient,
        slack: SlackClient,
        workflow_id: str = "deploy.yml",
        environment: str = "production",
    ):
        super().__init__(store=store, metrics=metrics, publisher=publisher)
        self.github = github
        self.slack = slack
        self.workflow_id = workflow_id
        self.environment = environment

    def handlers(self):
        return {
            EventType.TESTING_RESULT_PASSED: self.handle_test_passed,
            EventType.TESTING_RESULT_FAILED: self.handle_test_failed,
        }

    async def handle_test_passed(self, data: Any) -> None:
        result = TestingResult.model_validate(unwrap_payload(data))
        task_id = result.task_id
        self.log.info("Handling passed tests for task %s", task_id)

        await self.github.dispatch_workflow(self.workflow_id, ref="main", inputs={"task_id": task_id})
        await self._record(task_id, "triggered")
        self.metric("ai_agent.deployment.deployments_triggered", f"task:{task_id}")

    async def handle_test_failed(self, data: Any) -> None:
        result = TestingResult.model_validate(unwrap_payload(data))
        task_id = result.task_id
        self.log.info("Handling failed tests for task %s", task_id)

        await self.slack.post_message(f"Deployment halted for task {task_id} due to failed tests.")
        await self._record(task_id, "failed")
        self.metric("ai_agent.deployment.deployments_failed", f"task:{task_id}")

    async def _record(self, task_id: str, status: str) -> None:
        info = DeploymentInfo(
            deployment_id=f"deploy-{uuid.uuid4()}",
            task_id=task_id,
            environment=self.environment,
            status=status,
        )
        await self.store.deployments.record(info)

    async def aclose(self) -> None:
        await self.github.aclose()
        await self.slack.aclose()
