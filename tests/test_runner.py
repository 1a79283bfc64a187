"""Tests for the run orchestrator."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any

import httpx
import pytest

from newslettar.config import Settings
from newslettar.exceptions import DispatchError, RenderError
from newslettar.services import runner
from newslettar.services.aggregator import SourceClients
from newslettar.services.runner import RunStatus, build_subject, generate_and_send

NOW = datetime(2025, 1, 3, 12, 0, tzinfo=timezone.utc)

UPCOMING = [
    {
        "seasonNumber": 1,
        "episodeNumber": 2,
        "airDate": "2025-01-05",
        "series": {"title": "Foo"},
    }
]


def build_settings(**overrides: Any) -> Settings:
    base = {
        "SONARR_URL": "http://sonarr.local",
        "SONARR_API_KEY": "key",
        "FROM_EMAIL": "news@example.com",
        "TO_EMAILS": "reader@example.com",
    }
    base.update(overrides)
    return Settings(_env_file=None, **base)  # type: ignore[arg-type]


def sonarr_transport(calendar: list[dict[str, Any]]) -> httpx.MockTransport:
    def handler(request: httpx.Request) -> httpx.Response:
        if request.url.path.endswith("/calendar"):
            return httpx.Response(200, json=calendar)
        return httpx.Response(200, json={"records": []})

    return httpx.MockTransport(handler)


def test_build_subject() -> None:
    assert build_subject(NOW) == "📺 Your Weekly Newsletter - January 3, 2025"


@pytest.mark.anyio("asyncio")
async def test_sends_when_there_is_content(monkeypatch: pytest.MonkeyPatch) -> None:
    sent: list[tuple[str, str, Settings]] = []
    monkeypatch.setattr(
        runner, "send_newsletter", lambda subject, html, settings: sent.append((subject, html, settings))
    )

    async with httpx.AsyncClient(transport=sonarr_transport(UPCOMING)) as http_client:
        settings = build_settings()
        result = await generate_and_send(
            settings, SourceClients.from_settings(settings, http_client), now=NOW
        )

    assert result.status is RunStatus.SENT
    assert result.success is True
    assert len(sent) == 1
    subject, html, used = sent[0]
    assert subject == "📺 Your Weekly Newsletter - January 3, 2025"
    assert "S01E02" in html
    assert used is settings


@pytest.mark.anyio("asyncio")
async def test_skips_when_there_is_no_content(monkeypatch: pytest.MonkeyPatch) -> None:
    def fail_render(*args: Any, **kwargs: Any) -> str:  # pragma: no cover - must not run
        raise AssertionError("render should be skipped")

    monkeypatch.setattr(runner, "render_newsletter", fail_render)
    monkeypatch.setattr(runner, "send_newsletter", fail_render)

    async with httpx.AsyncClient(transport=sonarr_transport([])) as http_client:
        settings = build_settings()
        result = await generate_and_send(
            settings, SourceClients.from_settings(settings, http_client), now=NOW
        )

    assert result.status is RunStatus.SKIPPED
    assert result.success is True


@pytest.mark.anyio("asyncio")
async def test_dispatch_failure_is_reported_not_raised(monkeypatch: pytest.MonkeyPatch) -> None:
    def refuse(subject: str, html: str, settings: Settings) -> None:
        raise DispatchError("SMTP error: relay denied")

    monkeypatch.setattr(runner, "send_newsletter", refuse)

    async with httpx.AsyncClient(transport=sonarr_transport(UPCOMING)) as http_client:
        settings = build_settings()
        result = await generate_and_send(
            settings, SourceClients.from_settings(settings, http_client), now=NOW
        )

    assert result.status is RunStatus.FAILED
    assert result.success is False
    assert "relay denied" in result.message
    assert result.to_dict()["success"] is False


@pytest.mark.anyio("asyncio")
async def test_missing_recipients_fail_the_run() -> None:
    async with httpx.AsyncClient(transport=sonarr_transport(UPCOMING)) as http_client:
        settings = build_settings(TO_EMAILS="")
        result = await generate_and_send(
            settings, SourceClients.from_settings(settings, http_client), now=NOW
        )

    assert result.status is RunStatus.FAILED
    assert "TO_EMAILS" in result.message


@pytest.mark.anyio("asyncio")
async def test_render_failure_fails_the_run(monkeypatch: pytest.MonkeyPatch) -> None:
    def broken(*args: Any, **kwargs: Any) -> str:
        raise RenderError("template rendering failed: boom")

    monkeypatch.setattr(runner, "render_newsletter", broken)

    async with httpx.AsyncClient(transport=sonarr_transport(UPCOMING)) as http_client:
        settings = build_settings()
        result = await generate_and_send(
            settings, SourceClients.from_settings(settings, http_client), now=NOW
        )

    assert result.status is RunStatus.FAILED
    assert "boom" in result.message


@pytest.mark.anyio("asyncio")
async def test_preview_renders_even_without_content() -> None:
    async with httpx.AsyncClient(transport=sonarr_transport([])) as http_client:
        settings = build_settings()
        html = await runner.build_preview(
            settings, SourceClients.from_settings(settings, http_client), now=NOW
        )

    assert "No shows scheduled for this week" in html


@pytest.mark.anyio("asyncio")
async def test_unexpected_render_error_fails_the_run(monkeypatch: pytest.MonkeyPatch) -> None:
    def broken_filter(*args: Any, **kwargs: Any) -> str:
        raise TypeError("unsupported operand")

    monkeypatch.setattr(runner, "render_newsletter", broken_filter)

    async with httpx.AsyncClient(transport=sonarr_transport(UPCOMING)) as http_client:
        settings = build_settings()
        result = await generate_and_send(
            settings, SourceClients.from_settings(settings, http_client), now=NOW
        )

    assert result.status is RunStatus.FAILED
    assert "unsupported operand" in result.message
