from __future__ import annotations

import logging
import time
from typing import Any, Callable, Dict

from nowplaying.canvas import CanvasLookup
from nowplaying.credentials import CredentialStore
from nowplaying.errors import AuthError, AuthRequiredError, ProviderError
from nowplaying.models import AlbumImage, PlaybackSnapshot, Track


log = logging.getLogger(__name__)


def _project_track(item: Dict[str, Any]) -> Track:
    album = item.get("album") or {}
    external_urls = item.get("external_urls") or {}
    images = [AlbumImage(**img) for img in album.get("images") or [] if img.get("url")]
    return Track(
        id=item.get("id"),
        name=item.get("name"),
        artists=[a.get("name") or "" for a in item.get("artists") or []],
        album=album.get("name"),
        album_images=images,
        duration_ms=item.get("duration_ms"),
        external_url=external_urls.get("spotify"),
        external_urls=external_urls,
    )


def project_playback(raw: Dict[str, Any] | None, timestamp: int) -> PlaybackSnapshot:
    """Turn Spotify's playback payload into the shape the display polls for."""
    if not raw:
        return PlaybackSnapshot(is_playing=False, timestamp=timestamp)
    item = raw.get("item")
    return PlaybackSnapshot(
        is_playing=bool(raw.get("is_playing") or False),
        progress_ms=max(int(raw.get("progress_ms") or 0), 0),
        timestamp=timestamp,
        item=_project_track(item) if item else None,
    )


class PlaybackProxy:
    def __init__(
        self,
        store: CredentialStore,
        provider,
        canvas: CanvasLookup,
        clock: Callable[[], float] = time.time,
    ):
        self.store = store
        self.provider = provider
        self.canvas = canvas
        self._clock = clock

    async def snapshot(self) -> PlaybackSnapshot:
        raw = await self._call("now-playing", self.provider.current_playback)
        try:
            snapshot = project_playback(raw, int(self._clock() * 1000))
        except Exception as exc:
            log.exception("now-playing error: unexpected payload")
            raise ProviderError("now-playing", f"unexpected playback payload: {exc}") from exc
        if snapshot.item is not None:
            snapshot.item.canvas_url = await self._canvas_url(snapshot.item.id)
        return snapshot

    async def _canvas_url(self, track_id: str | None) -> str | None:
        try:
            return await self.canvas.lookup(track_id)
        except Exception:
            log.exception("canvas detection error")
            return None

    async def play(self) -> None:
        await self._call("play", self.provider.play)

    async def pause(self) -> None:
        await self._call("pause", self.provider.pause)

    async def skip_next(self) -> None:
        await self._call("next", self.provider.next_track)

    async def skip_previous(self) -> None:
        await self._call("previous", self.provider.previous_track)

    async def _authorize(self) -> str:
        refresh_failed = False
        try:
            await self.store.ensure_fresh()
        except AuthError:
            # already logged by the store; a still-valid token keeps working
            refresh_failed = True
        if not self.store.has_access_token() or (refresh_failed and self.store.is_expired()):
            raise AuthRequiredError(auth_possible=self.store.is_configured())
        return self.store.access_token

    async def _call(self, operation: str, func: Callable[[str], Any]) -> Any:
        access_token = await self._authorize()
        try:
            return await func(access_token)
        except ProviderError as exc:
            log.error("%s error: %s", operation, exc.detail)
            raise ProviderError(operation, exc.detail) from exc
        except Exception as exc:
            log.exception("%s error", operation)
            raise ProviderError(operation, str(exc) or exc.__class__.__name__) from exc
