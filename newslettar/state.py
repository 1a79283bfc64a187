"""Process-wide state: the current settings snapshot and its scheduler."""

from __future__ import annotations

import asyncio
import logging
import threading
from pathlib import Path
from typing import Mapping

import httpx
from pydantic import ValidationError

from .config import Settings, default_env_file, load_settings, write_env_file
from .exceptions import ConfigurationError
from .services.aggregator import SourceClients
from .services.runner import RunResult, build_preview, generate_and_send
from .services.scheduler import Scheduler, describe_next_run

logger = logging.getLogger(__name__)


class AppState:
    """Hold an immutable ``Settings`` snapshot and the scheduler built from it.

    Readers take the ``settings`` reference without locking; ``reload`` swaps
    it under a lock held only for the assignment. Reconfiguration always
    replaces the scheduler instead of mutating it.
    """

    def __init__(
        self,
        http_client: httpx.AsyncClient,
        *,
        env_file: Path | str | None = None,
        settings: Settings | None = None,
    ):
        self.env_file = Path(env_file) if env_file is not None else default_env_file()
        self.http_client = http_client
        self._lock = threading.Lock()
        self._settings = settings if settings is not None else load_settings(self.env_file)
        self._scheduler: Scheduler | None = None
        # Serialises stop-then-start so only one trigger is ever live.
        self._scheduler_lock = asyncio.Lock()
        self._background: set[asyncio.Task[RunResult]] = set()

    @property
    def settings(self) -> Settings:
        return self._settings

    @property
    def scheduler(self) -> Scheduler | None:
        return self._scheduler

    def reload(self) -> Settings:
        """Re-read the config file; the old snapshot survives a failed read."""

        try:
            fresh = load_settings(self.env_file, strict=True)
        except ValidationError as exc:
            logger.error("Failed to reload configuration: %s", exc)
            raise ConfigurationError(f"invalid configuration: {exc}") from exc
        with self._lock:
            self._settings = fresh
        logger.info("Configuration reloaded from %s", self.env_file)
        return fresh

    async def apply_config(self, updates: Mapping[str, str]) -> Settings:
        """Persist non-empty ``updates``, reload, and restart the scheduler.

        When the merged file does not validate, its previous contents are
        restored and ``ConfigurationError`` is raised.
        """

        previous = self.env_file.read_text(encoding="utf-8") if self.env_file.is_file() else None
        write_env_file(self.env_file, updates)
        try:
            settings = self.reload()
        except ConfigurationError:
            if previous is None:
                self.env_file.unlink(missing_ok=True)
            else:
                self.env_file.write_text(previous, encoding="utf-8")
            raise
        logger.info("Configuration saved to %s", self.env_file)
        await self.restart_scheduler()
        return settings

    def sources(self, settings: Settings | None = None) -> SourceClients:
        return SourceClients.from_settings(settings or self._settings, self.http_client)

    async def run_newsletter(self) -> RunResult:
        """Run the pipeline once against the snapshot current at call time."""

        settings = self._settings
        result = await generate_and_send(settings, self.sources(settings))
        logger.info("Newsletter run finished: %s", result.message)
        return result

    def trigger_newsletter(self) -> asyncio.Task[RunResult]:
        """Start a run in the background and return its task."""

        task = asyncio.create_task(self.run_newsletter())
        self._background.add(task)
        task.add_done_callback(self._background.discard)
        return task

    async def preview(self) -> str:
        settings = self._settings
        return await build_preview(settings, self.sources(settings))

    async def start_scheduler(self) -> None:
        async with self._scheduler_lock:
            await self._start_scheduler_locked()

    async def stop_scheduler(self) -> None:
        async with self._scheduler_lock:
            await self._stop_scheduler_locked()

    async def restart_scheduler(self) -> None:
        """Replace the running scheduler with one built from current settings."""

        async with self._scheduler_lock:
            logger.info("Restarting scheduler with new configuration")
            await self._stop_scheduler_locked()
            await self._start_scheduler_locked()

    async def _start_scheduler_locked(self) -> None:
        if self._scheduler is not None and self._scheduler.running:
            return
        self._scheduler = Scheduler.from_settings(self._settings, self.run_newsletter)
        await self._scheduler.start()

    async def _stop_scheduler_locked(self) -> None:
        scheduler, self._scheduler = self._scheduler, None
        if scheduler is not None:
            await scheduler.stop()

    def next_run_description(self) -> str:
        settings = self._settings
        return describe_next_run(settings.schedule_day, settings.schedule_time, settings.timezone)

    async def close(self) -> None:
        """Stop the scheduler and wait for background runs to finish."""

        await self.stop_scheduler()
        if self._background:
            await asyncio.gather(*list(self._background), return_exceptions=True)
