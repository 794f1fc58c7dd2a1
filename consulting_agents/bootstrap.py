from __future__ import annotations

import asyncio
import logging
import signal
from typing import Any, Optional

from .agents import CONSUMING_AGENTS, Agent, SubprocessTestRunner
from .dal import Store
from .db.mongodb import close_db, get_db
from .errors import BrokerConnectionError, ConfigurationError
from .events.rabbit import BrokerClient
from .integrations import (
    ConfluenceClient,
    DatadogLogsClient,
    GitHubClient,
    GoogleWorkspaceClient,
    JiraClient,
    SlackClient,
    ZendeskClient,
)
from .logger import setup_logging
from .metrics import DogStatsdMetrics, MetricsSink
from .runtime import AgentRuntime, Publisher
from .settings import Settings, settings

log = logging.getLogger("bus.bootstrap")


def _require(cfg: Settings, *keys: str) -> None:
    missing = [k for k in keys if not getattr(cfg, k)]
    if missing:
        raise ConfigurationError(f"missing required settings: {', '.join(missing)}")


# ----------------- Infrastructure -----------------

def build_broker(name: str, cfg: Settings = settings) -> BrokerClient:
    return BrokerClient(
        cfg.RABBITMQ_URL,
        queue_name=cfg.RABBITMQ_QUEUE,
        prefetch_count=cfg.RABBITMQ_PREFETCH_COUNT,
        connect_timeout=cfg.RABBITMQ_CONNECT_TIMEOUT,
        connection_name=f"{cfg.SERVICE_NAME}:{name}",
    )


def build_metrics(cfg: Settings = settings) -> DogStatsdMetrics:
    return DogStatsdMetrics(host=cfg.STATSD_HOST, port=cfg.STATSD_PORT, service=cfg.DATADOG_SERVICE)


async def build_store() -> Store:
    return Store.from_db(await get_db())


# ----------------- Vendor clients -----------------

def slack_client(cfg: Settings = settings) -> SlackClient:
    _require(cfg, "SLACK_BOT_TOKEN", "SLACK_CHANNEL_ID")
    return SlackClient(token=cfg.SLACK_BOT_TOKEN, channel_id=cfg.SLACK_CHANNEL_ID, timeout=cfg.VENDOR_TIMEOUT_SECONDS)


def github_client(cfg: Settings = settings) -> GitHubClient:
    _require(cfg, "GITHUB_TOKEN", "GITHUB_REPO_OWNER", "GITHUB_REPO_NAME")
    return GitHubClient(
        token=cfg.GITHUB_TOKEN,
        owner=cfg.GITHUB_REPO_OWNER,
        repo=cfg.GITHUB_REPO_NAME,
        base_url=cfg.GITHUB_API_URL,
        timeout=cfg.VENDOR_TIMEOUT_SECONDS,
    )


def jira_client(cfg: Settings = settings) -> JiraClient:
    _require(cfg, "JIRA_BASE_URL", "JIRA_EMAIL", "JIRA_API_TOKEN", "JIRA_PROJECT_KEY")
    return JiraClient(
        base_url=cfg.JIRA_BASE_URL,
        email=cfg.JIRA_EMAIL,
        api_token=cfg.JIRA_API_TOKEN,
        project_key=cfg.JIRA_PROJECT_KEY,
        timeout=cfg.VENDOR_TIMEOUT_SECONDS,
    )


def confluence_client(cfg: Settings = settings) -> ConfluenceClient:
    _require(cfg, "CONFLUENCE_BASE_URL", "CONFLUENCE_USER_EMAIL", "CONFLUENCE_API_TOKEN")
    return ConfluenceClient(
        base_url=cfg.CONFLUENCE_BASE_URL,
        email=cfg.CONFLUENCE_USER_EMAIL,
        api_token=cfg.CONFLUENCE_API_TOKEN,
        space_key=cfg.CONFLUENCE_SPACE_KEY,
        timeout=cfg.VENDOR_TIMEOUT_SECONDS,
    )


def zendesk_client(cfg: Settings = settings) -> ZendeskClient:
    _require(cfg, "ZENDESK_SUBDOMAIN", "ZENDESK_EMAIL", "ZENDESK_API_TOKEN")
    return ZendeskClient(
        subdomain=cfg.ZENDESK_SUBDOMAIN,
        email=cfg.ZENDESK_EMAIL,
        api_token=cfg.ZENDESK_API_TOKEN,
        timeout=cfg.VENDOR_TIMEOUT_SECONDS,
    )


def google_client(cfg: Settings = settings) -> GoogleWorkspaceClient:
    _require(cfg, "GOOGLE_CLIENT_ID", "GOOGLE_CLIENT_SECRET", "GOOGLE_REFRESH_TOKEN")
    return GoogleWorkspaceClient(
        client_id=cfg.GOOGLE_CLIENT_ID,
        client_secret=cfg.GOOGLE_CLIENT_SECRET,
        refresh_token=cfg.GOOGLE_REFRESH_TOKEN,
        calendar_id=cfg.GOOGLE_CALENDAR_ID,
        sender=f"no-reply@{cfg.DOMAIN_NAME}",
        timeout=cfg.VENDOR_TIMEOUT_SECONDS,
    )


def datadog_client(cfg: Settings = settings) -> Optional[DatadogLogsClient]:
    """Optional: without keys the self-improvement agent runs without its health check."""
    if not (cfg.DATADOG_API_KEY and cfg.DATADOG_APP_KEY):
        log.warning("DATADOG_API_KEY/DATADOG_APP_KEY not set; scheduled health check disabled")
        return None
    return DatadogLogsClient(
        api_key=cfg.DATADOG_API_KEY,
        app_key=cfg.DATADOG_APP_KEY,
        api_url=cfg.datadog_api_url,
        timeout=cfg.VENDOR_TIMEOUT_SECONDS,
    )


def vendor_kwargs(name: str, cfg: Settings = settings) -> dict[str, Any]:
    """Per-agent collaborators; raises ConfigurationError when a required vendor is not configured."""
    if name == "client-communication":
        return {"google": google_client(cfg), "slack": slack_client(cfg)}
    if name == "project-management":
        return {"jira": jira_client(cfg), "sync_interval_seconds": cfg.PROJECT_SYNC_INTERVAL_SECONDS}
    if name == "development":
        return {"github": github_client(cfg)}
    if name == "testing":
        try:
            runner = SubprocessTestRunner(cfg.TEST_COMMAND, timeout=cfg.TEST_TIMEOUT_SECONDS)
        except ValueError as e:
            raise ConfigurationError(f"invalid TEST_COMMAND: {e}") from e
        return {"run_tests": runner}
    if name == "deployment":
        return {
            "github": github_client(cfg),
            "slack": slack_client(cfg),
            "workflow_id": cfg.GITHUB_DEPLOY_WORKFLOW,
        }
    if name == "internal-communication":
        return {"slack": slack_client(cfg)}
    if name == "documentation":
        return {"confluence": confluence_client(cfg)}
    if name == "support":
        return {"zendesk": zendesk_client(cfg)}
    if name == "self-improvement":
        return {
            "github": github_client(cfg),
            "datadog": datadog_client(cfg),
            "health_check_interval_seconds": cfg.HEALTH_CHECK_INTERVAL_SECONDS,
        }
    raise ConfigurationError(f"unknown agent: {name}")


# ----------------- Agents -----------------

def build_agent(
    name: str,
    *,
    store: Store,
    metrics: MetricsSink,
    publisher: Publisher,
    cfg: Settings = settings,
) -> Agent:
    cls = CONSUMING_AGENTS.get(name)
    if cls is None:
        raise ConfigurationError(f"unknown agent: {name} (known: {', '.join(sorted(CONSUMING_AGENTS))})")
    return cls(store=store, metrics=metrics, publisher=publisher, **vendor_kwargs(name, cfg))


def build_runtime(agent: Agent, broker: BrokerClient, cfg: Settings = settings) -> AgentRuntime:
    return AgentRuntime(
        agent.name,
        broker,
        agent.handlers(),
        handler_timeout=cfg.HANDLER_TIMEOUT_SECONDS,
        max_retries=cfg.MAX_HANDLER_RETRIES,
        failure_policy=cfg.HANDLER_FAILURE_POLICY,
        dead_letter_queue=cfg.RABBITMQ_DEAD_LETTER_QUEUE,
        triggers=agent.schedules(),
    )


async def run_agent(name: str) -> int:
    """Run one consuming agent until SIGINT/SIGTERM. Returns the process exit status."""
    setup_logging(agent=name)
    broker = build_broker(name)
    metrics = build_metrics()
    store = await build_store()

    try:
        agent = build_agent(name, store=store, metrics=metrics, publisher=broker)
    except ConfigurationError as e:
        log.error("Cannot start %s: %s", name, e)
        metrics.close()
        await close_db()
        return 1

    runtime = build_runtime(agent, broker)
    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        loop.add_signal_handler(sig, runtime.stop)

    try:
        await runtime.run()
    except BrokerConnectionError as e:
        log.error("Cannot start %s: %s", name, e)
        return 1
    finally:
        for sig in (signal.SIGINT, signal.SIGTERM):
            loop.remove_signal_handler(sig)
        await agent.aclose()
        metrics.close()
        await close_db()
    return 0


async def publish_once(event_type: str, data: Any) -> int:
    """Inject a single event onto the shared queue."""
    setup_logging(agent="cli")
    broker = build_broker("cli")
    try:
        await broker.connect()
        await broker.declare_queue()
        await broker.publish_event(event_type, data)
    except BrokerConnectionError as e:
        log.error("Cannot publish %s: %s", event_type, e)
        return 1
    finally:
        await broker.close()
    return 0


async def init_db() -> int:
    setup_logging(agent="cli")
    store = await build_store()
    try:
        await store.ensure_indexes()
    finally:
        await close_db()
    log.info("Indexes ensured on %s", settings.MONGO_DB)
    return 0


__all__ = [
    "build_broker",
    "build_metrics",
    "build_store",
    "build_agent",
    "build_runtime",
    "vendor_kwargs",
    "run_agent",
    "publish_once",
    "init_db",
]
