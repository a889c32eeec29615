"""Error kinds raised by the iiko integration."""

import json
from typing import Optional

import httpx

MAX_DETAIL_LENGTH = 500


class IikoError(Exception):
    """Base class for iiko integration failures."""

    def __init__(self, message: str, detail: Optional[str] = None):
        super().__init__(message)
        self.message = message
        self.detail = detail

    def __str__(self) -> str:
        if self.detail:
            return f"{self.message}: {self.detail}"
        return self.message


class DateRangeError(IikoError, ValueError):
    """Sync or report requested without a usable date range."""


class ConfigurationError(IikoError):
    """No active iiko connection settings."""


class AuthenticationError(IikoError):
    """Login to the iiko server failed."""


class UpstreamRequestError(IikoError):
    """A report or list request to the iiko server failed."""

    def __init__(
        self,
        message: str,
        detail: Optional[str] = None,
        status_code: Optional[int] = None,
    ):
        super().__init__(message, detail)
        self.status_code = status_code


class PersistenceError(IikoError):
    """Replacing imported sales in the database failed."""


def extract_error_detail(response: httpx.Response) -> str:
    """Best-effort message from an iiko error response body."""
    text = response.text.strip()
    try:
        payload = json.loads(text) if text else None
    except ValueError:
        payload = None

    if isinstance(payload, dict):
        for key in ("message", "error", "errorDescription", "errorMessage"):
            value = payload.get(key)
            if value:
                return str(value)[:MAX_DETAIL_LENGTH]

    if text:
        return text[:MAX_DETAIL_LENGTH]
    return f"HTTP {response.status_code}"
