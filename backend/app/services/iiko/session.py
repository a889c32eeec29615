"""iiko Server API session (license) management.

iiko servers hand out a limited number of concurrent API sessions. Every
token obtained via ``/resto/api/auth`` holds one of those licenses until it
is released via ``/resto/api/logout`` or expires on the server side, so
callers should always pair ``authenticate`` with ``logout``::

    async with manager.session() as token:
        ...
"""

import logging
from contextlib import asynccontextmanager
from datetime import datetime, timedelta, timezone
from typing import AsyncIterator, Optional

import httpx

from app.core.config import settings
from app.services.iiko.exceptions import AuthenticationError, extract_error_detail

logger = logging.getLogger(__name__)

AUTH_PATH = "/resto/api/auth"
LOGOUT_PATH = "/resto/api/logout"


class IikoSessionManager:
    """Obtains, caches and releases one iiko access token.

    One instance belongs to one operation (a sync, a connection test);
    the token cache is never shared between instances.
    """

    def __init__(
        self,
        http: httpx.AsyncClient,
        login: str,
        password_hash: str,
        token_ttl: Optional[timedelta] = None,
        auth_timeout: Optional[float] = None,
        logout_timeout: Optional[float] = None,
    ):
        self._http = http
        self._login = login
        self._password_hash = password_hash
        self._token_ttl = token_ttl or timedelta(minutes=settings.iiko_token_cache_minutes)
        self._auth_timeout = auth_timeout or settings.iiko_auth_timeout
        self._logout_timeout = logout_timeout or settings.iiko_logout_timeout

        self._token: Optional[str] = None
        self._expires_at: Optional[datetime] = None

    @property
    def is_authenticated(self) -> bool:
        return self._token is not None and not self._is_expired()

    @property
    def token_expires_at(self) -> Optional[datetime]:
        return self._expires_at

    def _is_expired(self) -> bool:
        return self._expires_at is None or datetime.now(timezone.utc) >= self._expires_at

    async def authenticate(self) -> str:
        """Return a valid token, logging in only when the cached one expired."""
        if self._token and not self._is_expired():
            return self._token

        if self._token:
            # Past the local cutoff but possibly still live on the server
            await self.logout()

        logger.info(f"iiko login as '{self._login}' at {self._http.base_url}")
        try:
            response = await self._http.get(
                AUTH_PATH,
                params={"login": self._login, "pass": self._password_hash},
                timeout=self._auth_timeout,
            )
        except httpx.TimeoutException as e:
            logger.error(f"iiko authentication timed out: {e}")
            raise AuthenticationError(
                "Failed to authenticate with iiko server", "request timed out"
            ) from e
        except httpx.HTTPError as e:
            logger.error(f"iiko authentication failed: {e}")
            raise AuthenticationError(
                "Failed to authenticate with iiko server", str(e) or type(e).__name__
            ) from e

        if response.is_error:
            detail = extract_error_detail(response)
            logger.error(f"iiko authentication rejected: {response.status_code} - {detail}")
            raise AuthenticationError("Failed to authenticate with iiko server", detail)

        token = response.text.strip()
        if not token or "<" in token or " " in token:
            # An HTML error page or a message instead of the bare token
            logger.error(f"iiko authentication returned unexpected body: {token[:200]!r}")
            raise AuthenticationError(
                "Failed to authenticate with iiko server",
                f"unexpected response: {token[:200]}" if token else "empty token",
            )

        self._token = token
        self._expires_at = datetime.now(timezone.utc) + self._token_ttl
        return token

    async def logout(self) -> None:
        """Release the current token. Never raises."""
        if not self._token:
            return

        try:
            await self._http.get(
                LOGOUT_PATH,
                params={"key": self._token},
                timeout=self._logout_timeout,
            )
        except Exception as e:
            logger.warning(f"iiko logout failed: {e}")
        finally:
            self._token = None
            self._expires_at = None

    @asynccontextmanager
    async def session(self) -> AsyncIterator[str]:
        """Authenticate on entry and log out on every exit path."""
        try:
            yield await self.authenticate()
        finally:
            await self.logout()

    async def __aenter__(self) -> "IikoSessionManager":
        await self.authenticate()
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.logout()
