from __future__ import annotations

import logging

from fastapi import FastAPI
from fastapi.responses import ORJSONResponse

from ..agents import HTTP_AGENTS, ClientPortal
from ..bootstrap import build_agent, build_broker, build_metrics, build_runtime, build_store
from ..db.mongodb import close_db
from ..errors import ConfigurationError
from ..settings import settings
from .health_routes import router as health_router
from .inbound_routes import router as inbound_router
from .middleware import add_request_logging
from .portal_routes import router as portal_router

log = logging.getLogger("web.app")


def create_app(agent_name: str) -> FastAPI:
    """
    HTTP surface for one agent process.

    client-portal: POST /submit-request, publish-only.
    client-communication: POST /gmail/inbound, plus the agent's queue consumer
    running in the same process.
    """
    if agent_name not in HTTP_AGENTS:
        raise ConfigurationError(f"{agent_name} has no HTTP surface (choose from {', '.join(HTTP_AGENTS)})")

    app = FastAPI(
        title=f"{settings.SERVICE_NAME} – {agent_name}",
        version="0.1.0",
        default_response_class=ORJSONResponse,
    )
    app.state.agent_name = agent_name
    add_request_logging(app)

    app.include_router(health_router)
    if agent_name == ClientPortal.name:
        app.include_router(portal_router)
    else:
        app.include_router(inbound_router)

    @app.on_event("startup")
    async def startup():
        log.info("startup begin agent=%s", agent_name)
        broker = build_broker(agent_name)
        metrics = build_metrics()
        store = await build_store()
        app.state.broker = broker
        app.state.metrics = metrics

        if agent_name == ClientPortal.name:
            await broker.connect()
            await broker.declare_queue()
            app.state.portal = ClientPortal(store=store, metrics=metrics, publisher=broker)
        else:
            agent = build_agent(agent_name, store=store, metrics=metrics, publisher=broker)
            runtime = build_runtime(agent, broker)
            await runtime.start()
            app.state.client_communication = agent
            app.state.runtime = runtime

        log.info("startup complete agent=%s", agent_name)

    @app.on_event("shutdown")
    async def shutdown():
        runtime = getattr(app.state, "runtime", None)
        if runtime is not None:
            await runtime.shutdown()
        else:
            broker = getattr(app.state, "broker", None)
            if broker is not None:
                await broker.close()

        agent = getattr(app.state, "client_communication", None)
        if agent is not None:
            await agent.aclose()
        metrics = getattr(app.state, "metrics", None)
        if metrics is not None:
            metrics.close()
        await close_db()

    return app


__all__ = ["create_app"]
