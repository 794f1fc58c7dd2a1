from __future__ import annotations

import argparse
import asyncio
import logging
import sys

import orjson
import uvicorn

from .agents import CONSUMING_AGENTS, HTTP_AGENTS
from .bootstrap import init_db, publish_once, run_agent
from .errors import ConfigurationError
from .events.types import EventType
from .logger import setup_logging
from .settings import settings

log = logging.getLogger("bus.cli")


def serve(agent_name: str, host: str, port: int) -> int:
    from .web.app import create_app

    setup_logging(agent=agent_name)
    try:
        app = create_app(agent_name)
    except ConfigurationError as e:
        log.error("Cannot serve %s: %s", agent_name, e)
        return 1

    server = uvicorn.Server(uvicorn.Config(app, host=host, port=port, log_config=None))
    server.run()
    # uvicorn leaves `started` unset when a startup hook raised
    return 0 if server.started else 1


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="consulting-agents",
        description="Product-development consulting agents on a shared RabbitMQ queue",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  %(prog)s list
  %(prog)s run deployment
  %(prog)s serve client-portal --port 4000
  %(prog)s publish testing_result_passed '{"taskId": "task-1"}'
  %(prog)s init-db
        """,
    )
    sub = parser.add_subparsers(dest="command", required=True)

    p_run = sub.add_parser("run", help="Run a consuming agent")
    p_run.add_argument("agent", choices=sorted(CONSUMING_AGENTS))

    p_serve = sub.add_parser("serve", help="Run an HTTP agent under uvicorn")
    p_serve.add_argument("agent", choices=list(HTTP_AGENTS))
    p_serve.add_argument("--host", default="0.0.0.0")
    p_serve.add_argument("--port", type=int, default=settings.PORT)

    p_pub = sub.add_parser("publish", help="Publish one event onto the shared queue")
    p_pub.add_argument("type", help=f"Event type, e.g. {EventType.SYSTEM_MONITORING_ALERT.value}")
    p_pub.add_argument("data", nargs="?", default="null", help="JSON payload for the envelope's data field")

    sub.add_parser("init-db", help="Create MongoDB indexes")
    sub.add_parser("list", help="List agents")
    return parser


def main(argv=None) -> int:
    args = build_parser().parse_args(argv)

    if args.command == "list":
        for name in sorted(CONSUMING_AGENTS):
            print(f"{name}{'  (http)' if name in HTTP_AGENTS else ''}")
        for name in HTTP_AGENTS:
            if name not in CONSUMING_AGENTS:
                print(f"{name}  (http, publish-only)")
        return 0

    if args.command == "run":
        return asyncio.run(run_agent(args.agent))

    if args.command == "serve":
        return serve(args.agent, args.host, args.port)

    if args.command == "publish":
        try:
            data = orjson.loads(args.data)
        except orjson.JSONDecodeError as e:
            print(f"Invalid JSON payload: {e}", file=sys.stderr)
            return 2
        return asyncio.run(publish_once(args.type, data))

    if args.command == "init-db":
        return asyncio.run(init_db())

    return 2


if __name__ == "__main__":
    sys.exit(main())
