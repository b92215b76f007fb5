from __future__ import annotations

import os
from typing import List

from dotenv import load_dotenv
from pydantic import BaseModel, ConfigDict, Field


SCOPES = [
    "user-read-playback-state",
    "user-read-currently-playing",
    "user-modify-playback-state",
    "user-read-private",
]


class Settings(BaseModel):
    """Process configuration, read once at startup."""

    model_config = ConfigDict(frozen=True)

    client_id: str | None = Field(None, description="Spotify client id")
    client_secret: str | None = Field(None, description="Spotify client secret")
    host: str = "127.0.0.1"
    port: int = 8888
    redirect_uri_override: str | None = None
    public_dir: str = Field(default_factory=lambda: os.path.join(os.getcwd(), "public"))
    canvas_dir_override: str | None = None
    canvas_map_file: str = Field(default_factory=lambda: os.path.join(os.getcwd(), "canvas.json"))
    cors_origins: List[str] = Field(default_factory=lambda: ["*"])
    log_level: str = "INFO"

    @property
    def redirect_uri(self) -> str:
        # Spotify no longer accepts "localhost" redirect URIs, only loopback IPs
        return self.redirect_uri_override or f"http://127.0.0.1:{self.port}/callback"

    @property
    def canvas_dir(self) -> str:
        return self.canvas_dir_override or os.path.join(self.public_dir, "canvas")

    @property
    def scope(self) -> str:
        return " ".join(SCOPES)

    @property
    def missing(self) -> List[str]:
        """Names of the OAuth variables that are not set."""
        names = []
        if not self.client_id:
            names.append("SPOTIFY_CLIENT_ID")
        if not self.client_secret:
            names.append("SPOTIFY_CLIENT_SECRET")
        return names

    @classmethod
    def from_env(cls) -> "Settings":
        """Build settings from the environment (and a .env file, if present).

        Uses environment variables:
        - SPOTIFY_CLIENT_ID / SPOTIFY_CLIENT_SECRET
        - SPOTIFY_REDIRECT_URI (defaults to http://127.0.0.1:<port>/callback)
        - NOWPLAYING_HOST, NOWPLAYING_PORT
        - NOWPLAYING_PUBLIC_DIR, NOWPLAYING_CANVAS_DIR, NOWPLAYING_CANVAS_MAP
        - NOWPLAYING_CORS_ORIGINS (comma separated)
        - NOWPLAYING_LOG_LEVEL
        """
        load_dotenv()

        values = {
            "client_id": os.getenv("SPOTIFY_CLIENT_ID") or None,
            "client_secret": os.getenv("SPOTIFY_CLIENT_SECRET") or None,
            "redirect_uri_override": os.getenv("SPOTIFY_REDIRECT_URI") or None,
            "canvas_dir_override": os.getenv("NOWPLAYING_CANVAS_DIR") or None,
        }
        if os.getenv("NOWPLAYING_HOST"):
            values["host"] = os.getenv("NOWPLAYING_HOST")
        if os.getenv("NOWPLAYING_PORT"):
            values["port"] = int(os.getenv("NOWPLAYING_PORT"))
        if os.getenv("NOWPLAYING_PUBLIC_DIR"):
            values["public_dir"] = os.getenv("NOWPLAYING_PUBLIC_DIR")
        if os.getenv("NOWPLAYING_CANVAS_MAP"):
            values["canvas_map_file"] = os.getenv("NOWPLAYING_CANVAS_MAP")
        origins = os.getenv("NOWPLAYING_CORS_ORIGINS")
        if origins:
            values["cors_origins"] = [o.strip() for o in origins.split(",") if o.strip()]
        if os.getenv("NOWPLAYING_LOG_LEVEL"):
            values["log_level"] = os.getenv("NOWPLAYING_LOG_LEVEL").upper()
        return cls(**values)
