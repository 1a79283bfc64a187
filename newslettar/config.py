"""Application configuration models."""

from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Any, Mapping

from dotenv import dotenv_values
from pydantic import Field, ValidationError, field_validator
from pydantic_settings import (
    BaseSettings,
    PydanticBaseSettingsSource,
    SettingsConfigDict,
)

logger = logging.getLogger(__name__)

DEFAULT_ENV_FILE = ".env"

# Keys the console is allowed to persist, in the order they are displayed.
CONFIG_KEYS: tuple[str, ...] = (
    "SONARR_URL",
    "SONARR_API_KEY",
    "RADARR_URL",
    "RADARR_API_KEY",
    "MAILGUN_SMTP",
    "MAILGUN_PORT",
    "MAILGUN_USER",
    "MAILGUN_PASS",
    "FROM_EMAIL",
    "FROM_NAME",
    "TO_EMAILS",
    "TIMEZONE",
    "SCHEDULE_DAY",
    "SCHEDULE_TIME",
    "SHOW_POSTERS",
    "SHOW_DOWNLOADED",
)


class Settings(BaseSettings):
    """Settings loaded from a key=value file, then the environment.

    Unlike the pydantic-settings default, values found in the file take
    precedence over process environment variables.
    """

    sonarr_url: str = Field(default="", alias="SONARR_URL")
    sonarr_api_key: str = Field(default="", alias="SONARR_API_KEY")
    radarr_url: str = Field(default="", alias="RADARR_URL")
    radarr_api_key: str = Field(default="", alias="RADARR_API_KEY")

    smtp_host: str = Field(default="smtp.mailgun.org", alias="MAILGUN_SMTP")
    smtp_port: int = Field(default=587, alias="MAILGUN_PORT", ge=1, le=65_535)
    smtp_user: str = Field(default="", alias="MAILGUN_USER")
    smtp_password: str = Field(default="", alias="MAILGUN_PASS")
    from_email: str = Field(default="", alias="FROM_EMAIL")
    from_name: str = Field(default="Newslettar", alias="FROM_NAME")
    to_emails: str = Field(default="", alias="TO_EMAILS")

    timezone: str = Field(default="UTC", alias="TIMEZONE")
    schedule_day: str = Field(default="Sun", alias="SCHEDULE_DAY")
    schedule_time: str = Field(default="09:00", alias="SCHEDULE_TIME")

    show_posters: bool = Field(default=True, alias="SHOW_POSTERS")
    show_downloaded: bool = Field(default=True, alias="SHOW_DOWNLOADED")

    server_host: str = Field(default="0.0.0.0", alias="WEBUI_HOST")
    server_port: int = Field(default=8080, alias="WEBUI_PORT")

    model_config = SettingsConfigDict(
        env_file=DEFAULT_ENV_FILE,
        env_file_encoding="utf-8",
        extra="ignore",
        frozen=True,
        populate_by_name=True,
    )

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,
        dotenv_settings: PydanticBaseSettingsSource,
        file_secret_settings: PydanticBaseSettingsSource,
    ) -> tuple[PydanticBaseSettingsSource, ...]:
        return (init_settings, dotenv_settings, env_settings)

    @field_validator("show_posters", "show_downloaded", mode="before")
    @classmethod
    def _parse_toggle(cls, value: object) -> object:
        """Anything but an explicit ``false`` enables the toggle."""

        if isinstance(value, str):
            return value.strip().lower() != "false"
        return value

    @field_validator("sonarr_url", "radarr_url", mode="before")
    @classmethod
    def _strip_trailing_slash(cls, value: object) -> object:
        if isinstance(value, str):
            return value.strip().rstrip("/")
        return value

    @property
    def recipients(self) -> list[str]:
        """Return the trimmed, non-empty recipient addresses."""

        return [part.strip() for part in self.to_emails.split(",") if part.strip()]

    def to_public_dict(self) -> dict[str, str]:
        """Return the persisted keys in their file representation."""

        values = self.model_dump(by_alias=True)
        payload: dict[str, str] = {}
        for key in CONFIG_KEYS:
            value = values.get(key)
            if isinstance(value, bool):
                payload[key] = "true" if value else "false"
            else:
                payload[key] = "" if value is None else str(value)
        return payload


def default_env_file() -> Path:
    """Return the configuration file path, overridable via ``ENV_FILE``."""

    return Path(os.environ.get("ENV_FILE") or DEFAULT_ENV_FILE)


def _defaults_for_rejected(exc: ValidationError) -> dict[str, Any]:
    """Map each rejected key to its field default, keyed by alias."""

    by_key = {}
    for name, field in Settings.model_fields.items():
        by_key[name] = (field.alias or name, field.default)
        if field.alias:
            by_key[field.alias] = (field.alias, field.default)

    defaults: dict[str, Any] = {}
    for error in exc.errors():
        loc = error.get("loc") or ()
        key = loc[0] if loc else None
        if not isinstance(key, str) or key not in by_key:
            continue
        alias, default = by_key[key]
        defaults[alias] = default
    return defaults


def load_settings(env_file: Path | str | None = None, *, strict: bool = False) -> Settings:
    """Build a fresh settings snapshot from the key=value file.

    A missing file is treated as empty so every default applies. Values that
    fail validation are logged and replaced by their defaults unless
    ``strict`` is set, in which case the ``ValidationError`` propagates.
    """

    path = Path(env_file) if env_file is not None else default_env_file()
    try:
        return Settings(_env_file=path)  # type: ignore[call-arg]
    except ValidationError as exc:
        if strict:
            raise
        defaults = _defaults_for_rejected(exc)
        if not defaults:
            raise
        logger.warning(
            "Ignoring invalid configuration values for %s; using defaults",
            ", ".join(sorted(defaults)),
        )
        return Settings(_env_file=path, **defaults)  # type: ignore[arg-type]


def read_env_file(path: Path | str) -> dict[str, str]:
    """Parse a key=value file, skipping comments and malformed lines."""

    file_path = Path(path)
    if not file_path.is_file():
        return {}
    values = dotenv_values(file_path, encoding="utf-8")
    return {key: value for key, value in values.items() if key and value is not None}


def write_env_file(path: Path | str, updates: Mapping[str, str]) -> dict[str, str]:
    """Merge non-empty ``updates`` into the file and rewrite it.

    Keys already present but absent from ``updates`` are preserved. Returns
    the merged mapping that was written.
    """

    file_path = Path(path)
    merged = read_env_file(file_path)
    for key, value in updates.items():
        if value is None:
            continue
        text = str(value).strip()
        if not text:
            continue
        merged[key.strip().upper()] = text

    lines = [f"{key}={merged[key]}\n" for key in sorted(merged)]
    file_path.write_text("".join(lines), encoding="utf-8")
    return merged
