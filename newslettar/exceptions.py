"""Exception hierarchy for the newsletter pipeline."""

from __future__ import annotations


class NewslettarError(Exception):
    """Base exception for all Newslettar errors."""


class ConfigurationError(NewslettarError):
    """Raised when required settings are missing or invalid."""


class SourceNotConfiguredError(ConfigurationError):
    """Raised before any network call when a source lacks its URL or API key."""

    def __init__(self, service: str):
        super().__init__(f"{service} not configured (URL and API key are required)")
        self.service = service


class FetchError(NewslettarError):
    """Raised when a source service cannot be queried."""

    def __init__(self, service: str, message: str, *, status_code: int | None = None):
        super().__init__(message)
        self.service = service
        self.status_code = status_code

    def __str__(self) -> str:
        base = super().__str__()
        if self.status_code is not None:
            return f"{self.service}: HTTP {self.status_code}: {base}"
        return f"{self.service}: {base}"


class SourceTransportError(FetchError):
    """Connection failures, timeouts and non-2xx responses."""


class SourceDecodeError(FetchError):
    """Malformed or unexpectedly shaped JSON payloads."""


class RenderError(NewslettarError):
    """Raised when the newsletter template fails to render."""


class DispatchError(NewslettarError):
    """Raised when the mail submission fails."""
