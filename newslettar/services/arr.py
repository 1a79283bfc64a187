"""Shared plumbing for the Sonarr/Radarr v3 HTTP APIs."""

from __future__ import annotations

import logging
from typing import Any

import httpx

from ..exceptions import SourceDecodeError, SourceNotConfiguredError, SourceTransportError

logger = logging.getLogger(__name__)

API_PREFIX = "/api/v3"
HISTORY_PAGE_SIZE = 1000
IMPORT_EVENT_TYPES = frozenset({"downloadFolderImported", "downloadImported"})


def build_http_client() -> httpx.AsyncClient:
    """Return the pooled client shared by every source request."""

    return httpx.AsyncClient(
        timeout=httpx.Timeout(15.0),
        limits=httpx.Limits(max_connections=10, max_keepalive_connections=5),
    )


def extract_poster(images: Any, *, prefer_local: bool = False) -> str:
    """Return the first ``poster`` image URL, or an empty string."""

    if not isinstance(images, list):
        return ""
    for image in images:
        if not isinstance(image, dict) or image.get("coverType") != "poster":
            continue
        local = image.get("url") or ""
        remote = image.get("remoteUrl") or ""
        if prefer_local:
            return str(local or remote)
        return str(remote or local)
    return ""


class ArrClient:
    """Thin wrapper around one *arr service instance."""

    service_name = "arr"

    def __init__(self, base_url: str, api_key: str, http_client: httpx.AsyncClient):
        self._base_url = (base_url or "").strip().rstrip("/")
        self._api_key = (api_key or "").strip()
        self._client = http_client

    @property
    def configured(self) -> bool:
        return bool(self._base_url and self._api_key)

    def _headers(self) -> dict[str, str]:
        return {"X-Api-Key": self._api_key, "Accept": "application/json"}

    def _require_configured(self) -> None:
        if not self.configured:
            raise SourceNotConfiguredError(self.service_name)

    async def _get_json(self, path: str, params: dict[str, Any] | None = None) -> Any:
        """Issue a GET and decode the JSON body, raising typed fetch errors."""

        self._require_configured()
        url = f"{self._base_url}{API_PREFIX}{path}"
        try:
            response = await self._client.get(url, headers=self._headers(), params=params)
        except httpx.HTTPError as exc:
            raise SourceTransportError(
                self.service_name,
                f"request to {path} failed ({exc.__class__.__name__}): {exc}",
            ) from exc

        if not response.is_success:
            raise SourceTransportError(
                self.service_name,
                response.text[:200] or response.reason_phrase,
                status_code=response.status_code,
            )

        try:
            return response.json()
        except ValueError as exc:
            raise SourceDecodeError(
                self.service_name, f"malformed JSON from {path}: {exc}"
            ) from exc

    async def _fetch_history_records(self, include: dict[str, str]) -> list[dict[str, Any]]:
        params: dict[str, Any] = {
            "page": 1,
            "pageSize": HISTORY_PAGE_SIZE,
            "sortKey": "date",
            "sortDirection": "descending",
            **include,
        }
        data = await self._get_json("/history", params)
        if not isinstance(data, dict) or not isinstance(data.get("records"), list):
            raise SourceDecodeError(self.service_name, "history payload has no records list")
        return [record for record in data["records"] if isinstance(record, dict)]

    async def _fetch_calendar_entries(
        self, start: str, end: str, include: dict[str, str]
    ) -> list[dict[str, Any]]:
        params: dict[str, Any] = {
            "unmonitored": "true",
            "start": start,
            "end": end,
            **include,
        }
        data = await self._get_json("/calendar", params)
        if not isinstance(data, list):
            raise SourceDecodeError(self.service_name, "calendar payload is not a list")
        return [entry for entry in data if isinstance(entry, dict)]

    async def check_connection(self) -> tuple[bool, str]:
        """Check the system status endpoint for the console connectivity test."""

        if not self.configured:
            return False, "Missing URL or API key"
        try:
            await self._get_json("/system/status")
        except SourceTransportError as exc:
            if exc.status_code is not None:
                return False, f"Connection failed: HTTP {exc.status_code}"
            return False, f"Connection failed: {exc}"
        except SourceDecodeError:
            logger.info("%s status endpoint returned non-JSON content", self.service_name)
        return True, f"{self.service_name} connection successful!"
