"""Pytest configuration and shared fixtures."""

from __future__ import annotations

import sys
from pathlib import Path

import pytest


# Make the ``newslettar`` package importable when running tests without an
# editable install.
ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))


@pytest.fixture
def anyio_backend() -> str:
    """Force AnyIO tests to run on asyncio without requiring trio."""

    return "asyncio"


@pytest.fixture(autouse=True)
def _isolate_environment(monkeypatch: pytest.MonkeyPatch) -> None:
    """Keep host configuration variables out of settings-driven tests."""

    from newslettar.config import CONFIG_KEYS

    for key in (*CONFIG_KEYS, "ENV_FILE", "WEBUI_HOST", "WEBUI_PORT"):
        monkeypatch.delenv(key, raising=False)
