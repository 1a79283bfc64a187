"""Module executed when running ``python -m newslettar``."""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys

import uvicorn
from pydantic import ValidationError

from .config import load_settings
from .logs import configure_logging
from .services.aggregator import SourceClients
from .services.arr import build_http_client
from .services.runner import RunStatus, generate_and_send

logger = logging.getLogger("newslettar")


async def run_once() -> int:
    """Run a single newsletter pass without the console or scheduler."""

    try:
        settings = load_settings()
    except ValidationError as exc:
        logger.error("Invalid configuration, newsletter not sent: %s", exc)
        return 1
    async with build_http_client() as http_client:
        result = await generate_and_send(
            settings, SourceClients.from_settings(settings, http_client)
        )
    logger.info("%s", result.message)
    return 1 if result.status is RunStatus.FAILED else 0


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(
        prog="newslettar",
        description="Send the weekly Sonarr/Radarr newsletter once, or run the web console.",
    )
    parser.add_argument(
        "--web",
        action="store_true",
        help="serve the web console and run the weekly scheduler",
    )
    args = parser.parse_args(argv)

    configure_logging()
    if args.web:
        settings = load_settings()
        uvicorn.run(
            "newslettar.main:app",
            host=settings.server_host,
            port=settings.server_port,
        )
        return 0
    return asyncio.run(run_once())


if __name__ == "__main__":  # pragma: no cover - runtime entrypoint
    sys.exit(main())
