"""Weekly trigger that runs the newsletter in the configured timezone."""

from __future__ import annotations

import asyncio
import logging
from contextlib import suppress
from dataclasses import dataclass
from datetime import datetime, time, timedelta, tzinfo
from typing import Any, Awaitable, Callable

from ..config import Settings
from ..utils import format_long_date, resolve_timezone

logger = logging.getLogger(__name__)

# Cron-style weekday numbers, Sunday first.
DAY_NUMBERS: dict[str, int] = {
    "Sun": 0,
    "Mon": 1,
    "Tue": 2,
    "Wed": 3,
    "Thu": 4,
    "Fri": 5,
    "Sat": 6,
}
DEFAULT_HOUR = 9
DEFAULT_MINUTE = 0
# Upper bound for a single sleep so wall-clock jumps are noticed.
MAX_SLEEP_SECONDS = 60.0


def parse_day(token: str | None) -> int:
    """Map a day token to Sun=0..Sat=6; unknown tokens mean Sunday."""

    key = (token or "").strip()[:3].title()
    return DAY_NUMBERS.get(key, 0)


def parse_schedule_time(value: str | None) -> tuple[int, int]:
    """Parse ``HH:MM``.

    A value that is not two numeric colon-separated parts falls back to
    09:00. Numbers outside a valid clock time raise ``ValueError``.
    """

    parts = (value or "").strip().split(":")
    if len(parts) != 2:
        return DEFAULT_HOUR, DEFAULT_MINUTE
    try:
        hour = int(parts[0])
        minute = int(parts[1])
    except ValueError:
        return DEFAULT_HOUR, DEFAULT_MINUTE
    if not (0 <= hour <= 23 and 0 <= minute <= 59):
        raise ValueError(f"schedule time out of range: {value!r}")
    return hour, minute


def _cron_weekday(moment: datetime) -> int:
    return (moment.weekday() + 1) % 7


@dataclass(frozen=True, slots=True)
class ScheduleSpec:
    """A weekly day/time in a specific timezone."""

    weekday: int
    hour: int
    minute: int
    tz: tzinfo

    def next_fire(self, after: datetime) -> datetime:
        """Return the first matching moment strictly after ``after``."""

        local = after.astimezone(self.tz)
        days_ahead = (self.weekday - _cron_weekday(local)) % 7
        candidate_day = local.date() + timedelta(days=days_ahead)
        candidate = datetime.combine(candidate_day, time(self.hour, self.minute), tzinfo=self.tz)
        if candidate <= local:
            candidate = datetime.combine(
                candidate_day + timedelta(days=7),
                time(self.hour, self.minute),
                tzinfo=self.tz,
            )
        return candidate

    def matches(self, moment: datetime) -> bool:
        local = moment.astimezone(self.tz)
        return (
            _cron_weekday(local) == self.weekday
            and local.hour == self.hour
            and local.minute == self.minute
        )

    def describe(self) -> str:
        """Cron expression equivalent, for logging."""

        return f"{self.minute} {self.hour} * * {self.weekday}"


def build_schedule(day: str | None, time_str: str | None, timezone_name: str | None) -> ScheduleSpec:
    """Build the weekly schedule, raising ``ValueError`` for an invalid time."""

    hour, minute = parse_schedule_time(time_str)
    return ScheduleSpec(
        weekday=parse_day(day),
        hour=hour,
        minute=minute,
        tz=resolve_timezone(timezone_name),
    )


def format_run_time(moment: datetime) -> str:
    """Return e.g. ``Monday, January 2, 2006 at 3:04 PM MST``."""

    hour = moment.hour % 12 or 12
    meridiem = "AM" if moment.hour < 12 else "PM"
    zone = moment.tzname() or ""
    return f"{format_long_date(moment)} at {hour}:{moment.minute:02d} {meridiem} {zone}".rstrip()


def describe_next_run(
    day: str | None,
    time_str: str | None,
    timezone_name: str | None,
    *,
    now: datetime | None = None,
) -> str:
    """Return the next scheduled run as display text, without side effects."""

    tz = resolve_timezone(timezone_name)
    try:
        hour, minute = parse_schedule_time(time_str)
    except ValueError:
        hour, minute = DEFAULT_HOUR, DEFAULT_MINUTE
    spec = ScheduleSpec(weekday=parse_day(day), hour=hour, minute=minute, tz=tz)
    reference = now if now is not None else datetime.now(tz)
    return format_run_time(spec.next_fire(reference))


Job = Callable[[], Awaitable[Any]]


class Scheduler:
    """Run ``job`` every week at the configured moment.

    Each fire starts the job as its own task, so stopping the scheduler never
    interrupts a newsletter that is already being sent.
    """

    def __init__(
        self,
        spec: ScheduleSpec | None,
        job: Job,
        *,
        clock: Callable[[tzinfo], datetime] | None = None,
    ):
        self._spec = spec
        self._job = job
        self._clock = clock or datetime.now
        self._task: asyncio.Task[None] | None = None
        self._jobs: set[asyncio.Task[Any]] = set()
        self._next_run: datetime | None = None

    @classmethod
    def from_settings(cls, settings: Settings, job: Job) -> "Scheduler":
        try:
            spec = build_schedule(settings.schedule_day, settings.schedule_time, settings.timezone)
        except ValueError as exc:
            logger.warning("Failed to set up scheduler: %s", exc)
            spec = None
        return cls(spec, job)

    @property
    def spec(self) -> ScheduleSpec | None:
        return self._spec

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    @property
    def next_run(self) -> datetime | None:
        return self._next_run if self.running else None

    async def start(self) -> None:
        """Launch the trigger loop; without a valid schedule it stays idle."""

        if self._spec is None:
            logger.warning("Scheduler not started: no valid schedule configured")
            return
        if self.running:
            return
        logger.info("Setting up scheduler (cron: %s)", self._spec.describe())
        self._task = asyncio.create_task(self._run_loop())
        logger.info("Internal scheduler started")

    async def stop(self) -> None:
        """Stop the trigger loop. In-flight jobs are left to finish."""

        if self._task is None:
            return
        self._task.cancel()
        with suppress(asyncio.CancelledError):
            await self._task
        self._task = None
        self._next_run = None

    async def wait_for_jobs(self) -> None:
        """Wait for any fired jobs that are still running."""

        if self._jobs:
            await asyncio.gather(*list(self._jobs), return_exceptions=True)

    async def _run_loop(self) -> None:
        assert self._spec is not None
        while True:
            fire_at = self._spec.next_fire(self._clock(self._spec.tz))
            self._next_run = fire_at
            logger.info("Next scheduled run: %s", format_run_time(fire_at))
            while True:
                remaining = (fire_at - self._clock(self._spec.tz)).total_seconds()
                if remaining <= 0:
                    break
                await asyncio.sleep(min(remaining, MAX_SLEEP_SECONDS))
            self._fire()

    def _fire(self) -> None:
        logger.info("Scheduled newsletter triggered")
        task = asyncio.create_task(self._invoke())
        self._jobs.add(task)
        task.add_done_callback(self._jobs.discard)

    async def _invoke(self) -> None:
        try:
            await self._job()
        except Exception as exc:
            logger.exception("Scheduled newsletter run failed: %s", exc)
