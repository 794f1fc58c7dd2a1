from __future__ import annotations

import uuid
from datetime import datetime, timezone
from typing import Any, List, Optional

import orjson

from ..dal import Store
from ..errors import ExternalServiceError
from ..events.envelope import MonitoringAlert, unwrap_payload
from ..events.types import EventType
from ..integrations import DatadogLogsClient, GitHubClient
from ..metrics import MetricsSink
from ..runtime import Publisher
from ..scheduling import ScheduledTrigger
from .base import Agent

IMPROVEMENTS_FILE = "config/improvements.json"
BASE_BRANCH = "main"
DEFAULT_PROPOSAL = "Optimize database queries for better performance"

# alert type -> improvement to propose
ALERT_PROPOSALS = {
    "high_error_rate": DEFAULT_PROPOSAL,
}


class SelfImprovementAgent(Agent):
    name = "self-improvement"

    def __init__(
        self,
        *,
        store: Store,
        metrics: MetricsSink,
        publisher: Publisher,
        github: GitHubClient,
        datadog: Optional[DatadogLogsClient] = None,
        health_check_interval_seconds: Optional[int] = 3600,
    ):
        super().__init__(store=store, metrics=metrics, publisher=publisher)
        self.github = github
        self.datadog = datadog
        self.health_check_interval_seconds = health_check_interval_seconds

    def handlers(self):
        return {EventType.SYSTEM_MONITORING_ALERT: self.handle_system_alert}

    def schedules(self) -> List[ScheduledTrigger]:
        if self.datadog is None or not self.health_check_interval_seconds:
            return []
        return [ScheduledTrigger("health-check", self.health_check_interval_seconds, self.check_system_health)]

    async def handle_system_alert(self, data: Any) -> None:
        alert = MonitoringAlert.model_validate(unwrap_payload(data))
        self.log.info("Handling system alert: %s", alert.alert_type)

        proposal = ALERT_PROPOSALS.get(alert.alert_type)
        if proposal is None:
            self.log.info("No improvement rule for alert type %s", alert.alert_type)
            return
        await self.propose_improvement(proposal)

    async def propose_improvement(self, description: str) -> str:
        """Branch off main, append to the improvements file, open a PR. Returns the PR URL."""
        self.log.info("Proposing improvement via GitHub pull request: %s", description)
        branch = f"improvement-{uuid.uuid4()}"

        sha = await self.github.get_branch_sha(BASE_BRANCH)
        await self.github.create_branch(branch, sha=sha)

        existing = await self.github.get_file(IMPROVEMENTS_FILE, ref=branch)
        improvements = orjson.loads(existing[0]) if existing and existing[0].strip() else {}
        improvements[f"improvement-{uuid.uuid4()}"] = {
            "description": description,
            "proposedBy": "SelfImprovementAgent",
            "timestamp": datetime.now(timezone.utc).isoformat(),
        }

        await self.github.put_file(
            IMPROVEMENTS_FILE,
            content=orjson.dumps(improvements, option=orjson.OPT_INDENT_2),
            message=f"Propose system improvement: {description}",
            branch=branch,
            sha=existing[1] if existing else None,
        )
        url = await self.github.create_pull_request(
            title=f"Proposed Improvement: {description}",
            head=branch,
            base=BASE_BRANCH,
            body=(
                "This PR was automatically generated by the Self-Improvement Agent "
                f"to address the following improvement:\n\n{description}"
            ),
        )
        self.metric("ai_agent.self_improvement.proposals", "action:propose-improvement")
        self.log.info("Improvement proposal created: %s", url)
        return url

    async def check_system_health(self) -> bool:
        """Scheduled: propose an improvement when the last hour logged errors. Returns True if unhealthy."""
        assert self.datadog is not None
        try:
            unhealthy = await self.datadog.has_recent_errors()
        except ExternalServiceError as e:
            self.log.warning("Error querying Datadog, assuming healthy: %s", e)
            unhealthy = False

        if unhealthy:
            await self.propose_improvement(DEFAULT_PROPOSAL)
        else:
            self.log.info("System performance is healthy. No improvements needed.")
        self.metric("ai_agent.self_improvement.checks", f"health:{'unhealthy' if unhealthy else 'healthy'}")
        return unhealthy

    async def aclose(self) -> None:
        await self.github.aclose()
        if self.datadog is not None:
            await self.datadog.aclose()
