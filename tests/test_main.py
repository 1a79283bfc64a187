"""Tests for the console API."""

from __future__ import annotations

from pathlib import Path

import httpx
import pytest
from fastapi.testclient import TestClient

from newslettar.main import create_app, get_app_state


@pytest.fixture
def env_file(tmp_path: Path) -> Path:
    path = tmp_path / ".env"
    path.write_text(
        "FROM_EMAIL=news@example.com\nSCHEDULE_DAY=Wed\nSCHEDULE_TIME=14:30\n",
        encoding="utf-8",
    )
    return path


def test_healthcheck(env_file: Path) -> None:
    with TestClient(create_app(env_file)) as client:
        response = client.get("/healthz")

    assert response.status_code == 200
    assert response.json() == {"status": "ok"}


def test_config_roundtrip_restarts_scheduler(env_file: Path) -> None:
    app = create_app(env_file)
    with TestClient(app) as client:
        initial = client.get("/api/config").json()
        assert initial["FROM_EMAIL"] == "news@example.com"
        assert initial["SCHEDULE_DAY"] == "Wed"
        first_scheduler = get_app_state(app).scheduler

        response = client.post(
            "/api/config",
            json={
                "SCHEDULE_DAY": "Fri",
                "SHOW_POSTERS": False,
                "SONARR_URL": "",
                "UNKNOWN_KEY": "ignored",
            },
        )
        assert response.status_code == 200
        body = response.json()
        assert body["success"] is True
        assert body["config"]["SCHEDULE_DAY"] == "Fri"
        assert body["config"]["SHOW_POSTERS"] == "false"

        state = get_app_state(app)
        assert state.settings.schedule_day == "Fri"
        assert state.scheduler is not first_scheduler
        assert state.scheduler is not None and state.scheduler.running

        schedule = client.get("/api/schedule").json()
        logs = client.get("/api/logs")

    contents = env_file.read_text(encoding="utf-8")
    assert "SCHEDULE_DAY=Fri" in contents
    assert "SHOW_POSTERS=false" in contents
    assert "UNKNOWN_KEY" not in contents
    assert "SONARR_URL" not in contents
    assert schedule["day"] == "Fri"
    assert schedule["running"] is True
    assert schedule["next_run"].startswith("Friday, ")
    assert "Configuration saved" in logs.text


def test_invalid_config_keeps_previous_snapshot(env_file: Path) -> None:
    app = create_app(env_file)
    with TestClient(app) as client:
        response = client.post("/api/config", json={"MAILGUN_PORT": "not-a-port"})

        assert response.status_code == 400
        assert get_app_state(app).settings.smtp_port == 587


def test_send_and_wait_reports_skipped_run(env_file: Path) -> None:
    with TestClient(create_app(env_file)) as client:
        response = client.post("/api/send", params={"wait": "true"})

    assert response.status_code == 200
    body = response.json()
    assert body["success"] is True
    assert body["status"] == "skipped"


def test_send_in_background_returns_immediately(env_file: Path) -> None:
    with TestClient(create_app(env_file)) as client:
        response = client.post("/api/send")

    assert response.json() == {"success": True, "message": "Newsletter generation started"}


def test_preview_returns_html(env_file: Path) -> None:
    with TestClient(create_app(env_file)) as client:
        response = client.post("/api/preview")

    assert response.status_code == 200
    assert response.headers["content-type"].startswith("text/html")
    assert "Weekly Media Newsletter" in response.text
    assert "No movies scheduled for this week" in response.text


def test_service_checks(env_file: Path) -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        if request.headers.get("X-Api-Key") == "good":
            return httpx.Response(200, json={"version": "5.0"})
        return httpx.Response(401, text="Unauthorized")

    app = create_app(env_file)
    with TestClient(app) as client:
        get_app_state(app).http_client = httpx.AsyncClient(transport=httpx.MockTransport(handler))

        missing = client.post("/api/test-sonarr", json={}).json()
        sonarr = client.post(
            "/api/test-sonarr", json={"url": "http://sonarr.local", "api_key": "good"}
        ).json()
        radarr = client.post(
            "/api/test-radarr", json={"url": "http://radarr.local", "api_key": "bad"}
        ).json()
        email = client.post("/api/test-email", json={"smtp": "smtp.example.com", "port": 587}).json()

    assert missing == {"success": False, "message": "Missing URL or API key"}
    assert sonarr == {"success": True, "message": "Sonarr connection successful!"}
    assert radarr == {"success": False, "message": "Connection failed: HTTP 401"}
    assert email == {"success": False, "message": "SMTP credentials missing"}


def test_rejected_config_restores_file(env_file: Path) -> None:
    before = env_file.read_text(encoding="utf-8")
    with TestClient(create_app(env_file)) as client:
        client.post("/api/config", json={"MAILGUN_PORT": "70000"})

    assert env_file.read_text(encoding="utf-8") == before


def test_console_starts_with_invalid_config_value(tmp_path: Path) -> None:
    env_file = tmp_path / ".env"
    env_file.write_text("MAILGUN_PORT=abc\nSCHEDULE_DAY=Tue\n", encoding="utf-8")

    with TestClient(create_app(env_file)) as client:
        config = client.get("/api/config").json()

    assert config["MAILGUN_PORT"] == "587"
    assert config["SCHEDULE_DAY"] == "Tue"
