"""Client for the Sonarr (TV series) API."""

from __future__ import annotations

import logging
from datetime import date, datetime, timezone
from typing import Any

from ..models import Episode
from ..utils import coerce_int, coerce_str, normalize_date, parse_timestamp
from .arr import IMPORT_EVENT_TYPES, ArrClient, extract_poster

logger = logging.getLogger(__name__)


class SonarrClient(ArrClient):
    """Fetch downloaded and upcoming episodes from Sonarr."""

    service_name = "Sonarr"

    async def fetch_history(self, since: datetime) -> list[Episode]:
        """Return episodes imported at or after ``since``, newest first.

        Duplicate imports of the same (series, season, episode) are collapsed.
        """

        records = await self._fetch_history_records(
            {"includeSeries": "true", "includeEpisode": "true"}
        )
        cutoff = since if since.tzinfo else since.replace(tzinfo=timezone.utc)

        episodes: list[Episode] = []
        seen: set[tuple[int, int, int]] = set()
        for record in records:
            if record.get("eventType") not in IMPORT_EVENT_TYPES:
                continue
            imported_at = parse_timestamp(record.get("date"))
            if imported_at is None or imported_at < cutoff:
                continue

            series = record.get("series") if isinstance(record.get("series"), dict) else {}
            episode = record.get("episode") if isinstance(record.get("episode"), dict) else {}
            season_number = coerce_int(episode.get("seasonNumber"))
            episode_number = coerce_int(episode.get("episodeNumber"))
            series_id = coerce_int(
                record.get("seriesId") or series.get("id") or episode.get("seriesId")
            )
            key = (series_id, season_number, episode_number)
            if key in seen:
                continue
            seen.add(key)

            episodes.append(
                Episode(
                    series_title=coerce_str(series.get("title")),
                    season_number=season_number,
                    episode_number=episode_number,
                    title=coerce_str(episode.get("title")),
                    air_date=normalize_date(episode.get("airDate")),
                    downloaded=True,
                    poster_url=extract_poster(series.get("images")),
                    imdb_id=coerce_str(series.get("imdbId")),
                    tvdb_id=coerce_int(series.get("tvdbId")),
                )
            )

        logger.debug("Sonarr history yielded %d imported episodes", len(episodes))
        return episodes

    async def fetch_upcoming(self, start: date, end: date) -> list[Episode]:
        """Return every calendar episode in ``[start, end)``."""

        entries = await self._fetch_calendar_entries(
            start.strftime("%Y-%m-%d"),
            end.strftime("%Y-%m-%d"),
            {"includeSeries": "true", "includeEpisodeImages": "true"},
        )
        return [self._episode_from_calendar(entry) for entry in entries]

    @staticmethod
    def _episode_from_calendar(entry: dict[str, Any]) -> Episode:
        series = entry.get("series") if isinstance(entry.get("series"), dict) else {}
        return Episode(
            series_title=coerce_str(series.get("title")),
            season_number=coerce_int(entry.get("seasonNumber")),
            episode_number=coerce_int(entry.get("episodeNumber")),
            title=coerce_str(entry.get("title")),
            air_date=normalize_date(entry.get("airDate")),
            downloaded=bool(entry.get("hasFile")),
            poster_url=extract_poster(series.get("images"), prefer_local=True),
            imdb_id=coerce_str(series.get("imdbId")),
            tvdb_id=coerce_int(series.get("tvdbId")),
        )
