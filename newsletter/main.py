from __future__ import annotations

import argparse
import asyncio
import logging
import os
import sys
import uuid

from fastapi import FastAPI
import uvicorn

from newsletter.api.http_app import build_app
from newsletter.clients.stub import StubEmailClient
from newsletter.domain.errors import DomainValidationError
from newsletter.logging_setup import configure_logging
from newsletter.repositories.stub import InMemoryNewsletterRepository
from newsletter.roles import API_ROLE, SUPPORTED_ROLES, RuntimeRole, validate_role
from newsletter.services.bootstrap import RuntimeContainer, build_runtime_container

API_PORT = 8000
WORKER_PORT = 8100


def _default_port(role: RuntimeRole) -> int:
    return WORKER_PORT if role.runs_delivery_worker else API_PORT


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Newsletter delivery runtime")
    parser.add_argument("--role", required=True, help=f"One of: {', '.join(SUPPORTED_ROLES)}")
    parser.add_argument("--host", default=os.getenv("APP_HOST", "0.0.0.0"))
    parser.add_argument("--port", type=int, default=None)
    parser.add_argument(
        "--dry-run-startup",
        action="store_true",
        help="Wire dependencies from the environment, report them and exit",
    )
    parser.add_argument("--reload", action="store_true", help="Restart on code changes (dev mode)")
    return parser.parse_args(argv)


def _describe(container: RuntimeContainer) -> dict[str, str]:
    storage = "in-memory" if isinstance(container.repository, InMemoryNewsletterRepository) else "postgres"
    transport = "stub" if isinstance(container.email_client, StubEmailClient) else "http"
    return {"storage": storage, "email_transport": transport}


def _build_role_app(role: RuntimeRole, run_id: str, container: RuntimeContainer) -> FastAPI:
    return build_app(
        role=role.name,
        run_id=run_id,
        worker_loop=container.worker_loop,
        api_deps=container.api_deps,
        on_startup=container.on_startup,
        on_shutdown=container.on_shutdown,
    )


def create_runtime_app() -> FastAPI:
    """uvicorn factory used by `--reload`; the role comes from APP_ROLE."""
    role = validate_role(os.getenv("APP_ROLE", API_ROLE))
    configure_logging()
    return _build_role_app(role, str(uuid.uuid4()), build_runtime_container(role))


def run(argv: list[str] | None = None) -> int:
    args = parse_args(argv)

    try:
        role = validate_role(args.role)
    except ValueError as exc:
        sys.stderr.write(f"ERROR: {exc}\n")
        return 2

    configure_logging()
    run_id = str(uuid.uuid4())
    logger = logging.getLogger("runtime")
    context = {"role": role.name, "service": role.name, "run_id": run_id}

    try:
        container = build_runtime_container(role)
    except (ValueError, DomainValidationError) as exc:
        sys.stderr.write(f"ERROR: invalid runtime configuration: {exc}\n")
        return 2

    logger.info("runtime initialized", extra={**context, **_describe(container)})

    if args.dry_run_startup:
        if container.on_shutdown is not None:
            asyncio.run(container.on_shutdown())
        logger.info("dry-run startup complete", extra=context)
        return 0

    port = args.port if args.port is not None else _default_port(role)
    if args.reload:
        if container.on_shutdown is not None:
            asyncio.run(container.on_shutdown())
        os.environ["APP_ROLE"] = role.name
        uvicorn.run(
            "newsletter.main:create_runtime_app",
            host=args.host,
            port=port,
            log_level="warning",
            reload=True,
            factory=True,
        )
        return 0

    uvicorn.run(_build_role_app(role, run_id, container), host=args.host, port=port, log_level="warning")
    return 0


if __name__ == "__main__":
    raise SystemExit(run())
