from __future__ import annotations

import asyncio
import logging
import time
from typing import Callable

from nowplaying.config import Settings
from nowplaying.errors import AuthError, ProviderError
from nowplaying.models import AuthState, Credential


log = logging.getLogger(__name__)

# Refresh this long before Spotify's own expiry to avoid racing it
REFRESH_BUFFER_SECONDS = 30


class CredentialStore:
    """In-memory holder of the one access/refresh token pair.

    One instance per process, handed to every handler. Nothing is persisted:
    after a restart the user logs in again.
    """

    def __init__(self, settings: Settings, provider, clock: Callable[[], float] = time.time):
        self._settings = settings
        self._provider = provider
        self._clock = clock
        self._credential: Credential | None = None
        self._refresh_lock = asyncio.Lock()

    @property
    def credential(self) -> Credential | None:
        return self._credential

    @property
    def access_token(self) -> str | None:
        cred = self._credential
        return cred.access_token if cred else None

    def is_configured(self) -> bool:
        return bool(self._settings.client_id and self._settings.client_secret)

    def has_access_token(self) -> bool:
        return bool(self.access_token)

    def is_expired(self) -> bool:
        """True when the held access token is past Spotify's expiry (no buffer)."""
        cred = self._credential
        return cred is None or self._clock() >= cred.expires_at

    def needs_refresh(self) -> bool:
        cred = self._credential
        if cred is None or not cred.refresh_token:
            return False
        return self._clock() >= cred.expires_at - REFRESH_BUFFER_SECONDS

    def auth_state(self) -> AuthState:
        return AuthState(configured=self.is_configured(), authenticated=self.has_access_token())

    def store(self, access_token: str, refresh_token: str, expires_in: int) -> None:
        self._credential = Credential(
            access_token=access_token,
            refresh_token=refresh_token,
            expires_at=self._clock() + expires_in,
        )

    def clear(self) -> None:
        self._credential = None

    async def ensure_fresh(self) -> None:
        """Refresh the access token if it is about to expire.

        No-op when nothing has been stored yet. Raises AuthError on a failed
        refresh and keeps the previous credential; no retry is attempted.
        """
        if not self.needs_refresh():
            return
        async with self._refresh_lock:
            # another request may have refreshed while we waited
            if not self.needs_refresh():
                return
            current = self._credential
            try:
                token_info = await self._provider.refresh(current.refresh_token)
            except ProviderError as exc:
                log.error("Failed to refresh token: %s", exc.detail)
                raise AuthError(AuthError.REFRESH_FAILED, exc.detail) from exc
            except Exception as exc:
                log.exception("Failed to refresh token")
                raise AuthError(AuthError.REFRESH_FAILED, str(exc) or exc.__class__.__name__) from exc
            if self._credential is not current:
                # logged out (or logged in again) while the refresh was in flight
                log.info("Credential changed during refresh, discarding refreshed token")
                return
            # Spotify only sometimes rotates the refresh token
            self.store(
                token_info.access_token,
                token_info.refresh_token or current.refresh_token,
                token_info.expires_in,
            )
            log.info("Refreshed access token, expires in %ds", token_info.expires_in)
