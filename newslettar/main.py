"""FastAPI console for configuring and triggering the newsletter."""

from __future__ import annotations

import asyncio
import logging
from contextlib import AsyncExitStack, asynccontextmanager
from pathlib import Path
from typing import Any

from fastapi import FastAPI, HTTPException
from fastapi.responses import HTMLResponse, PlainTextResponse
from pydantic import BaseModel

from .config import CONFIG_KEYS
from .exceptions import ConfigurationError, NewslettarError
from .logs import configure_logging, get_log_buffer
from .services.arr import build_http_client
from .services.mailer import check_smtp_connection
from .services.radarr import RadarrClient
from .services.sonarr import SonarrClient
from .state import AppState

logger = logging.getLogger(__name__)


class ServiceCheckRequest(BaseModel):
    url: str | None = None
    api_key: str | None = None


class EmailCheckRequest(BaseModel):
    smtp: str | None = None
    port: int | None = None
    user: str | None = None
    password: str | None = None


def _stringify(value: Any) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    if value is None:
        return ""
    return str(value)


def create_app(env_file: Path | str | None = None) -> FastAPI:
    @asynccontextmanager
    async def lifespan(fastapi_app: FastAPI):
        configure_logging()
        exit_stack = AsyncExitStack()
        http_client = await exit_stack.enter_async_context(build_http_client())
        state = AppState(http_client, env_file=env_file)
        fastapi_app.state.newslettar = state
        logger.info("Loaded configuration from %s", state.env_file)
        await state.start_scheduler()

        try:
            yield
        finally:  # pragma: no cover - teardown path exercised at runtime
            await state.close()
            await exit_stack.aclose()

    fastapi_app = FastAPI(
        title="Newslettar",
        description="Weekly digest of Sonarr and Radarr activity",
        version="1.0.0",
        lifespan=lifespan,
    )
    register_routes(fastapi_app)
    return fastapi_app


def get_app_state(app: FastAPI) -> AppState:
    state = getattr(app.state, "newslettar", None)
    if not isinstance(state, AppState):
        raise RuntimeError("Application state not initialised")
    return state


def register_routes(fastapi_app: FastAPI) -> None:
    @fastapi_app.get("/healthz")
    async def healthcheck() -> dict[str, str]:
        return {"status": "ok"}

    @fastapi_app.get("/api/config")
    async def read_config() -> dict[str, str]:
        return get_app_state(fastapi_app).settings.to_public_dict()

    @fastapi_app.post("/api/config")
    async def update_config(payload: dict[str, Any]) -> dict[str, Any]:
        state = get_app_state(fastapi_app)
        updates = {
            key.upper(): _stringify(value)
            for key, value in payload.items()
            if key.upper() in CONFIG_KEYS
        }
        try:
            settings = await state.apply_config(updates)
        except ConfigurationError as exc:
            raise HTTPException(status_code=400, detail=str(exc)) from exc
        return {"success": True, "config": settings.to_public_dict()}

    @fastapi_app.post("/api/send")
    async def send_now(wait: bool = False) -> dict[str, Any]:
        state = get_app_state(fastapi_app)
        if not wait:
            state.trigger_newsletter()
            return {"success": True, "message": "Newsletter generation started"}
        result = await state.run_newsletter()
        return result.to_dict()

    @fastapi_app.post("/api/preview", response_class=HTMLResponse)
    async def preview() -> HTMLResponse:
        try:
            html = await get_app_state(fastapi_app).preview()
        except NewslettarError as exc:
            raise HTTPException(status_code=500, detail=str(exc)) from exc
        return HTMLResponse(html)

    @fastapi_app.get("/api/logs", response_class=PlainTextResponse)
    async def read_logs() -> PlainTextResponse:
        return PlainTextResponse("\n".join(get_log_buffer().lines()))

    @fastapi_app.get("/api/schedule")
    async def read_schedule() -> dict[str, Any]:
        state = get_app_state(fastapi_app)
        settings = state.settings
        scheduler = state.scheduler
        return {
            "day": settings.schedule_day,
            "time": settings.schedule_time,
            "timezone": settings.timezone,
            "running": bool(scheduler and scheduler.running),
            "next_run": state.next_run_description(),
        }

    @fastapi_app.post("/api/test-sonarr")
    async def check_sonarr(request: ServiceCheckRequest) -> dict[str, Any]:
        state = get_app_state(fastapi_app)
        settings = state.settings
        client = SonarrClient(
            request.url if request.url is not None else settings.sonarr_url,
            request.api_key if request.api_key is not None else settings.sonarr_api_key,
            state.http_client,
        )
        success, message = await client.check_connection()
        return {"success": success, "message": message}

    @fastapi_app.post("/api/test-radarr")
    async def check_radarr(request: ServiceCheckRequest) -> dict[str, Any]:
        state = get_app_state(fastapi_app)
        settings = state.settings
        client = RadarrClient(
            request.url if request.url is not None else settings.radarr_url,
            request.api_key if request.api_key is not None else settings.radarr_api_key,
            state.http_client,
        )
        success, message = await client.check_connection()
        return {"success": success, "message": message}

    @fastapi_app.post("/api/test-email")
    async def check_email(request: EmailCheckRequest) -> dict[str, Any]:
        settings = get_app_state(fastapi_app).settings
        success, message = await asyncio.to_thread(
            check_smtp_connection,
            request.smtp or settings.smtp_host,
            request.port or settings.smtp_port,
            request.user if request.user is not None else settings.smtp_user,
            request.password if request.password is not None else settings.smtp_password,
        )
        return {"success": success, "message": message}


app = create_app()
