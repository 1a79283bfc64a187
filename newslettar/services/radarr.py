"""Client for the Radarr (movies) API."""

from __future__ import annotations

import logging
from datetime import date, datetime, timezone
from typing import Any

from ..models import Movie
from ..utils import coerce_int, coerce_str, normalize_date, parse_timestamp
from .arr import IMPORT_EVENT_TYPES, ArrClient, extract_poster

logger = logging.getLogger(__name__)


class RadarrClient(ArrClient):
    """Fetch downloaded and upcoming movies from Radarr."""

    service_name = "Radarr"

    async def fetch_history(self, since: datetime) -> list[Movie]:
        """Return movies imported at or after ``since``, one per movie id."""

        records = await self._fetch_history_records({"includeMovie": "true"})
        cutoff = since if since.tzinfo else since.replace(tzinfo=timezone.utc)

        movies: list[Movie] = []
        seen: set[int] = set()
        for record in records:
            if record.get("eventType") not in IMPORT_EVENT_TYPES:
                continue
            imported_at = parse_timestamp(record.get("date"))
            if imported_at is None or imported_at < cutoff:
                continue

            movie = record.get("movie") if isinstance(record.get("movie"), dict) else {}
            movie_id = coerce_int(record.get("movieId") or movie.get("id"))
            if movie_id in seen:
                continue
            seen.add(movie_id)

            movies.append(
                Movie(
                    title=coerce_str(movie.get("title")),
                    year=coerce_int(movie.get("year")),
                    release_date=normalize_date(movie.get("inCinemas")),
                    downloaded=True,
                    poster_url=extract_poster(movie.get("images")),
                    imdb_id=coerce_str(movie.get("imdbId")),
                    tmdb_id=coerce_int(movie.get("tmdbId")),
                )
            )

        logger.debug("Radarr history yielded %d imported movies", len(movies))
        return movies

    async def fetch_upcoming(self, start: date, end: date) -> list[Movie]:
        """Return every calendar movie in ``[start, end)``."""

        entries = await self._fetch_calendar_entries(
            start.strftime("%Y-%m-%d"),
            end.strftime("%Y-%m-%d"),
            {"includeMovie": "true"},
        )
        return [self._movie_from_calendar(entry) for entry in entries]

    @staticmethod
    def _movie_from_calendar(entry: dict[str, Any]) -> Movie:
        release = (
            entry.get("physicalRelease")
            or entry.get("digitalRelease")
            or entry.get("inCinemas")
        )
        return Movie(
            title=coerce_str(entry.get("title")),
            year=coerce_int(entry.get("year")),
            release_date=normalize_date(release),
            downloaded=bool(entry.get("hasFile")),
            poster_url=extract_poster(entry.get("images"), prefer_local=True),
            imdb_id=coerce_str(entry.get("imdbId")),
            tmdb_id=coerce_int(entry.get("tmdbId")),
        )
