"""One pass of the pipeline: aggregate, render, send."""

from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import dataclass
from datetime import datetime
from enum import Enum

from ..config import Settings
from ..exceptions import ConfigurationError, DispatchError, RenderError
from ..utils import format_long_date, resolve_timezone
from .aggregator import SourceClients, run_aggregation
from .mailer import send_newsletter
from .renderer import render_newsletter

logger = logging.getLogger(__name__)

SUBJECT_TEMPLATE = "📺 Your Weekly Newsletter - {date}"


class RunStatus(str, Enum):
    SENT = "sent"
    SKIPPED = "skipped"
    FAILED = "failed"


@dataclass(slots=True)
class RunResult:
    """Outcome of one pipeline invocation."""

    status: RunStatus
    message: str

    @property
    def success(self) -> bool:
        return self.status is not RunStatus.FAILED

    def to_dict(self) -> dict[str, object]:
        return {
            "success": self.success,
            "status": self.status.value,
            "message": self.message,
        }


def build_subject(now: datetime) -> str:
    """Subject line dated with the end of the reporting week."""

    return SUBJECT_TEMPLATE.format(date=f"{now:%B} {now.day}, {now.year}")


def _resolve_now(settings: Settings, now: datetime | None) -> datetime:
    if now is None:
        return datetime.now(resolve_timezone(settings.timezone))
    return now


async def generate_and_send(
    settings: Settings,
    sources: SourceClients,
    *,
    now: datetime | None = None,
) -> RunResult:
    """Run the full pipeline once against a single settings snapshot.

    Failures are logged and reported through the returned ``RunResult``;
    nothing is raised, so schedulers and console callers keep running.
    """

    started = time.perf_counter()
    now = _resolve_now(settings, now)
    logger.info("Starting newsletter generation for %s", format_long_date(now))

    try:
        aggregation = await run_aggregation(settings, sources, now=now)
    except Exception as exc:
        logger.exception("Aggregation failed")
        return RunResult(RunStatus.FAILED, f"Aggregation failed: {exc}")

    if not aggregation.has_content:
        logger.info("No new content this week, skipping newsletter")
        return RunResult(RunStatus.SKIPPED, "No new content this week; newsletter not sent")

    try:
        html = render_newsletter(
            aggregation.data,
            show_posters=settings.show_posters,
            show_downloaded=settings.show_downloaded,
        )
    except RenderError as exc:
        return RunResult(RunStatus.FAILED, f"Failed to render newsletter: {exc}")
    except Exception as exc:
        logger.exception("Unexpected error while rendering newsletter")
        return RunResult(RunStatus.FAILED, f"Failed to render newsletter: {exc}")

    subject = build_subject(now)
    try:
        await asyncio.to_thread(send_newsletter, subject, html, settings)
    except ConfigurationError as exc:
        logger.error("Email not sent: %s", exc)
        return RunResult(RunStatus.FAILED, f"Email not sent: {exc}")
    except DispatchError as exc:
        logger.error("Failed to send email: %s", exc)
        return RunResult(RunStatus.FAILED, f"Failed to send email: {exc}")
    except Exception as exc:
        logger.exception("Unexpected error while sending email")
        return RunResult(RunStatus.FAILED, f"Failed to send email: {exc}")

    logger.info("Newsletter sent successfully in %.2fs", time.perf_counter() - started)
    return RunResult(RunStatus.SENT, "Newsletter sent successfully")


async def build_preview(
    settings: Settings,
    sources: SourceClients,
    *,
    now: datetime | None = None,
) -> str:
    """Aggregate and render without sending, even when there is no content."""

    now = _resolve_now(settings, now)
    aggregation = await run_aggregation(settings, sources, now=now)
    return render_newsletter(
        aggregation.data,
        show_posters=settings.show_posters,
        show_downloaded=settings.show_downloaded,
    )
