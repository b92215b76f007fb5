from __future__ import annotations

from typing import Dict, List

from pydantic import BaseModel, ConfigDict, Field


class TokenInfo(BaseModel):
    access_token: str = Field(..., description="Spotify access token")
    refresh_token: str | None = Field(None, description="Spotify refresh token")
    expires_in: int = Field(3600, description="Lifetime of the access token in seconds")


class Credential(BaseModel):
    """The single cached credential. Replaced as a whole, never mutated."""

    model_config = ConfigDict(frozen=True)

    access_token: str
    refresh_token: str
    expires_at: float = Field(..., description="Epoch seconds when the access token expires")


class AlbumImage(BaseModel):
    url: str
    width: int | None = None
    height: int | None = None


class Track(BaseModel):
    id: str | None = None
    name: str | None = None
    artists: List[str] = Field(default_factory=list)
    album: str | None = None
    album_images: List[AlbumImage] = Field(default_factory=list)
    duration_ms: int | None = None
    external_url: str | None = None
    external_urls: Dict[str, str] = Field(default_factory=dict)
    canvas_url: str | None = None


class PlaybackSnapshot(BaseModel):
    is_playing: bool = False
    progress_ms: int = Field(0, ge=0)
    timestamp: int = Field(..., description="Epoch milliseconds when the snapshot was taken")
    item: Track | None = None


class AuthState(BaseModel):
    configured: bool
    authenticated: bool
