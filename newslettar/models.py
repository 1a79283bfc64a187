"""Pydantic models describing newsletter payloads."""

from __future__ import annotations

from pydantic import BaseModel, Field


class Episode(BaseModel):
    """A single TV episode, either downloaded or upcoming."""

    series_title: str
    season_number: int = 0
    episode_number: int = 0
    title: str = ""
    air_date: str = ""
    downloaded: bool = False
    poster_url: str = ""
    imdb_id: str = ""
    tvdb_id: int = 0

    @property
    def code(self) -> str:
        """Return the ``SxxEyy`` label for the episode."""

        return f"S{self.season_number:02d}E{self.episode_number:02d}"


class Movie(BaseModel):
    """A single movie, either downloaded or upcoming."""

    title: str
    year: int = 0
    release_date: str = ""
    downloaded: bool = False
    poster_url: str = ""
    imdb_id: str = ""
    tmdb_id: int = 0


class SeriesGroup(BaseModel):
    """Episodes of one series, ordered by air date."""

    series_title: str
    poster_url: str = ""
    imdb_id: str = ""
    tvdb_id: int = 0
    episodes: list[Episode] = Field(default_factory=list)


class NewsletterData(BaseModel):
    """Everything the renderer needs for one digest."""

    week_start: str
    week_end: str
    upcoming_series_groups: list[SeriesGroup] = Field(default_factory=list)
    upcoming_movies: list[Movie] = Field(default_factory=list)
    downloaded_series_groups: list[SeriesGroup] = Field(default_factory=list)
    downloaded_movies: list[Movie] = Field(default_factory=list)

    def is_empty(self) -> bool:
        return not (
            self.upcoming_series_groups
            or self.upcoming_movies
            or self.downloaded_series_groups
            or self.downloaded_movies
        )
