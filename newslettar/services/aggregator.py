"""Concurrent collection and shaping of newsletter data."""

from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Awaitable, Iterable, TypeVar

import httpx

from ..config import Settings
from ..exceptions import FetchError, NewslettarError
from ..models import Episode, Movie, NewsletterData, SeriesGroup
from ..utils import format_long_date, resolve_timezone
from .radarr import RadarrClient
from .sonarr import SonarrClient

logger = logging.getLogger(__name__)

WINDOW_DAYS = 7

T = TypeVar("T")


@dataclass(slots=True)
class SourceClients:
    """The pair of media sources queried for every run."""

    sonarr: SonarrClient
    radarr: RadarrClient

    @classmethod
    def from_settings(
        cls, settings: Settings, http_client: httpx.AsyncClient
    ) -> "SourceClients":
        return cls(
            sonarr=SonarrClient(settings.sonarr_url, settings.sonarr_api_key, http_client),
            radarr=RadarrClient(settings.radarr_url, settings.radarr_api_key, http_client),
        )


@dataclass(slots=True)
class AggregationResult:
    """Aggregated data plus whether it is worth sending."""

    data: NewsletterData
    has_content: bool


def group_episodes_by_series(episodes: Iterable[Episode]) -> list[SeriesGroup]:
    """Group episodes by series title.

    Episodes are stably sorted by air date before grouping, so each group is
    chronological and inherits poster and ids from its earliest episode.
    Groups are ordered by title.
    """

    ordered = sorted(episodes, key=lambda episode: episode.air_date)
    groups: dict[str, SeriesGroup] = {}
    for episode in ordered:
        group = groups.get(episode.series_title)
        if group is None:
            group = SeriesGroup(
                series_title=episode.series_title,
                poster_url=episode.poster_url,
                imdb_id=episode.imdb_id,
                tvdb_id=episode.tvdb_id,
            )
            groups[episode.series_title] = group
        group.episodes.append(episode)

    return [groups[title] for title in sorted(groups)]


def sort_movies(movies: Iterable[Movie]) -> list[Movie]:
    """Order movies by raw release date; undated movies come first."""

    return sorted(movies, key=lambda movie: movie.release_date)


async def _guarded(label: str, noun: str, operation: Awaitable[list[T]]) -> list[T]:
    """Await one fetch, turning any failure into an empty slot."""

    try:
        items = await operation
    except FetchError as exc:
        logger.warning("%s error: %s", label, exc)
        return []
    except NewslettarError as exc:
        logger.warning("%s skipped: %s", label, exc)
        return []
    except Exception:
        logger.exception("%s failed unexpectedly", label)
        return []
    logger.info("%s: found %d %s", label, len(items), noun)
    return items


async def run_aggregation(
    settings: Settings,
    sources: SourceClients,
    *,
    now: datetime | None = None,
    window_days: int = WINDOW_DAYS,
) -> AggregationResult:
    """Fetch history and calendars from both sources in parallel and shape them."""

    if now is None:
        now = datetime.now(resolve_timezone(settings.timezone))
    week_start = now - timedelta(days=window_days)
    week_end = now
    next_week_end = now + timedelta(days=window_days)

    logger.info(
        "Week range: %s to %s",
        week_start.strftime("%Y-%m-%d"),
        week_end.strftime("%Y-%m-%d"),
    )
    started = time.perf_counter()
    (
        downloaded_episodes,
        upcoming_episodes,
        downloaded_movies,
        upcoming_movies,
    ) = await asyncio.gather(
        _guarded(
            "Sonarr history",
            "downloaded episodes",
            sources.sonarr.fetch_history(week_start),
        ),
        _guarded(
            "Sonarr calendar",
            "upcoming episodes",
            sources.sonarr.fetch_upcoming(week_end.date(), next_week_end.date()),
        ),
        _guarded(
            "Radarr history",
            "downloaded movies",
            sources.radarr.fetch_history(week_start),
        ),
        _guarded(
            "Radarr calendar",
            "upcoming movies",
            sources.radarr.fetch_upcoming(week_end.date(), next_week_end.date()),
        ),
    )
    logger.info("All data fetched in %.2fs (parallel)", time.perf_counter() - started)

    has_content = bool(upcoming_episodes or upcoming_movies) or (
        settings.show_downloaded and bool(downloaded_episodes or downloaded_movies)
    )

    data = NewsletterData(
        week_start=format_long_date(week_start),
        week_end=format_long_date(week_end),
        upcoming_series_groups=group_episodes_by_series(upcoming_episodes),
        upcoming_movies=sort_movies(upcoming_movies),
        downloaded_series_groups=group_episodes_by_series(downloaded_episodes),
        downloaded_movies=sort_movies(downloaded_movies),
    )
    return AggregationResult(
        data=data,
        has_content=has_content,
    )
