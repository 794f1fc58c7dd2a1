from __future__ import annotations

import asyncio
import logging
import shlex
import uuid
from typing import Any, Awaitable, Callable, Optional

from ..dal import Store
from ..events.envelope import DevelopmentTask, TestingResult, unwrap_payload
from ..events.types import EventType
from ..metrics import MetricsSink
from ..runtime import Publisher
from .base import Agent

log = logging.getLogger("agents.testing.runner")

TestRunner = Callable[[str], Awaitable[bool]]


class SubprocessTestRunner:
    """
    Runs the configured test command for a task; exit status 0 means passed.

    `{task_id}` is substituted per argument after splitting, so the id can never
    change the argv shape. A run that exceeds `timeout` counts as failed. The
    child is killed whenever the run ends early, including on cancellation.
    """

    __test__ = False

    def __init__(self, command_template: str, *, timeout: Optional[float] = None):
        self.argv_template = shlex.split(command_template)
        self.timeout = timeout

    def argv(self, task_id: str) -> list[str]:
        return [part.replace("{task_id}", task_id) for part in self.argv_template]

    async def __call__(self, task_id: str) -> bool:
        proc = await asyncio.create_subprocess_exec(
            *self.argv(task_id),
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.STDOUT,
        )
        try:
            output, _ = await asyncio.wait_for(proc.communicate(), timeout=self.timeout)
        except asyncio.TimeoutError:
            log.warning("Tests for task %s timed out after %ss", task_id, self.timeout)
            return False
        finally:
            if proc.returncode is None:
                proc.kill()
                await proc.wait()

        passed = proc.returncode == 0
        log.info("Tests for task %s %s", task_id, "passed" if passed else "failed")
        if not passed:
            log.debug("Test output for %s:\n%s", task_id, output.decode("utf-8", errors="replace"))
        return passed


class TestingAgent(Agent):
    __test__ = False

    name = "testing"

    def __init__(
        self,
        *,
        store: Store,
        metrics: MetricsSink,
        publisher: Publisher,
        run_tests: TestRunner,
    ):
        super().__init__(store=store, metrics=metrics, publisher=publisher)
        self.run_tests = run_tests

    def handlers(self):
        return {EventType.DEVELOPMENT_ISSUE_CREATED: self.handle_development_issue}

    async def handle_development_issue(self, data: Any) -> None:
        task = DevelopmentTask.model_validate(unwrap_payload(data))
        task_id = task.task_id
        self.log.info("Handling new development issue for task %s", task_id)

        passed = await self.run_tests(task_id)
        result = TestingResult(test_id=f"test-{uuid.uuid4()}", task_id=task_id, passed=passed)

        status = "completed" if passed else "failed"
        await self.store.tasks.update_status(task_id, status)
        self.metric("ai_agent.testing.tasks_updated", f"task:{task_id}", f"status:{status}")

        await self.store.testing_results.record(result)
        self.metric("ai_agent.testing.tests_run", f"task:{task_id}", f"result:{'passed' if passed else 'failed'}")

        next_event = EventType.TESTING_RESULT_PASSED if passed else EventType.TESTING_RESULT_FAILED
        await self.publisher.publish_event(next_event, result)
