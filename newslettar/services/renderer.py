"""Render aggregated data into the HTML email body."""

from __future__ import annotations

import logging

from jinja2 import Environment, PackageLoader, TemplateError, select_autoescape

from ..exceptions import RenderError
from ..models import Episode, NewsletterData
from ..utils import format_date_with_day

logger = logging.getLogger(__name__)

TEMPLATE_NAME = "newsletter.html"
IMDB_TITLE_URL = "https://www.imdb.com/title/{imdb_id}/"


def episode_code(episode: Episode) -> str:
    return episode.code


def imdb_url(imdb_id: str) -> str:
    return IMDB_TITLE_URL.format(imdb_id=imdb_id)


def _build_environment() -> Environment:
    env = Environment(
        loader=PackageLoader("newslettar", "templates"),
        autoescape=select_autoescape(["html"]),
        trim_blocks=True,
        lstrip_blocks=True,
    )
    env.filters["format_date_with_day"] = format_date_with_day
    env.filters["episode_code"] = episode_code
    env.filters["imdb_url"] = imdb_url
    return env


# Parsed once at import and reused for every render.
_environment = _build_environment()
_template = _environment.get_template(TEMPLATE_NAME)


def render_newsletter(
    data: NewsletterData, *, show_posters: bool, show_downloaded: bool
) -> str:
    """Return the complete HTML document for ``data``."""

    try:
        return _template.render(
            data=data,
            show_posters=show_posters,
            show_downloaded=show_downloaded,
        )
    except TemplateError as exc:
        logger.error("Failed to render newsletter template: %s", exc)
        raise RenderError(f"template rendering failed: {exc}") from exc
