from __future__ import annotations

import logging
from typing import Any, Callable

import requests
import spotipy
from fastapi.concurrency import run_in_threadpool
from spotipy.cache_handler import MemoryCacheHandler
from spotipy.oauth2 import SpotifyOAuth, SpotifyOauthError

from nowplaying.config import Settings
from nowplaying.errors import ProviderError
from nowplaying.models import TokenInfo


log = logging.getLogger(__name__)

REQUESTS_TIMEOUT = 10

UPSTREAM_ERRORS = (spotipy.SpotifyException, SpotifyOauthError, requests.RequestException)


def create_spotify_client(access_token: str) -> spotipy.Spotify:
    """Create a Spotipy client using a raw access token.

    Retries are disabled: a failed call is reported to the poller, which
    simply asks again on its next tick.
    """
    return spotipy.Spotify(
        auth=access_token,
        requests_timeout=REQUESTS_TIMEOUT,
        retries=0,
        status_retries=0,
        backoff_factor=0.0,
    )


def describe_error(exc: BaseException) -> str:
    """Upstream error text, passed through for the operator to read."""
    if isinstance(exc, spotipy.SpotifyException):
        return f"{exc.http_status} {exc.msg}".strip()
    if isinstance(exc, SpotifyOauthError):
        return exc.error_description or exc.error or str(exc)
    return str(exc) or exc.__class__.__name__


class SpotifyProvider:
    """The remote side: code exchange, refresh, playback state and controls.

    spotipy is synchronous, so every call is pushed to the threadpool to keep
    the event loop free while Spotify answers.
    """

    def __init__(self, settings: Settings):
        self._settings = settings

    def get_oauth(self) -> SpotifyOAuth:
        return SpotifyOAuth(
            client_id=self._settings.client_id,
            client_secret=self._settings.client_secret,
            redirect_uri=self._settings.redirect_uri,
            scope=self._settings.scope,
            cache_handler=MemoryCacheHandler(),
            open_browser=False,
            requests_timeout=REQUESTS_TIMEOUT,
        )

    def authorize_url(self, state: str) -> str:
        return self.get_oauth().get_authorize_url(state=state)

    async def exchange_code(self, code: str) -> TokenInfo:
        oauth = self.get_oauth()
        token_info = await self._run("exchange", oauth.get_access_token, code, check_cache=False)
        return TokenInfo(**token_info)

    async def refresh(self, refresh_token: str) -> TokenInfo:
        oauth = self.get_oauth()
        token_info = await self._run("refresh", oauth.refresh_access_token, refresh_token)
        return TokenInfo(**token_info)

    async def current_playback(self, access_token: str) -> dict | None:
        """Raw playback state, or None when Spotify answers 204 (nothing active)."""
        client = create_spotify_client(access_token)
        return await self._run("now-playing", client.current_playback)

    async def play(self, access_token: str) -> None:
        await self._run("play", create_spotify_client(access_token).start_playback)

    async def pause(self, access_token: str) -> None:
        await self._run("pause", create_spotify_client(access_token).pause_playback)

    async def next_track(self, access_token: str) -> None:
        await self._run("next", create_spotify_client(access_token).next_track)

    async def previous_track(self, access_token: str) -> None:
        await self._run("previous", create_spotify_client(access_token).previous_track)

    async def _run(self, operation: str, func: Callable[..., Any], *args, **kwargs) -> Any:
        try:
            return await run_in_threadpool(func, *args, **kwargs)
        except UPSTREAM_ERRORS as exc:
            raise ProviderError(operation, describe_error(exc)) from exc
