from __future__ import annotations

import html
import logging
import os

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import HTMLResponse, JSONResponse, PlainTextResponse, RedirectResponse
from fastapi.staticfiles import StaticFiles

from nowplaying.auth import AuthFlow
from nowplaying.auth import router as auth_router
from nowplaying.canvas import CANVAS_URL_PREFIX, CanvasLookup
from nowplaying.config import Settings
from nowplaying.credentials import CredentialStore
from nowplaying.errors import AuthError, AuthRequiredError, ConfigError, ProviderError
from nowplaying.models import PlaybackSnapshot
from nowplaying.playback import PlaybackProxy
from nowplaying.spotify_client import SpotifyProvider


log = logging.getLogger(__name__)

NOT_CONFIGURED_PAGE = """<!doctype html>
<html>
<head><title>Spotify not configured</title></head>
<body>
<h1>Spotify login is not configured</h1>
<p>Set {missing} in the environment (or a <code>.env</code> file) and restart the server.</p>
<p>The app's redirect URI in the Spotify dashboard must be <code>{redirect_uri}</code>.</p>
</body>
</html>
"""


def create_app(settings: Settings | None = None, provider=None, clock=None) -> FastAPI:
    settings = settings or Settings.from_env()
    provider = provider or SpotifyProvider(settings)
    clock_kwargs = {"clock": clock} if clock else {}

    app = FastAPI(title="nowplaying", version="0.1.0")
    app.state.settings = settings
    app.state.store = CredentialStore(settings, provider, **clock_kwargs)
    app.state.auth_flow = AuthFlow(app.state.store, provider)
    app.state.playback = PlaybackProxy(
        app.state.store,
        provider,
        CanvasLookup(settings.canvas_dir, settings.canvas_map_file),
        **clock_kwargs,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=list(settings.cors_origins),
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.exception_handler(ConfigError)
    async def config_error_handler(request: Request, exc: ConfigError):
        page = NOT_CONFIGURED_PAGE.format(
            missing=html.escape(" and ".join(settings.missing) or "the Spotify credentials"),
            redirect_uri=html.escape(settings.redirect_uri),
        )
        return HTMLResponse(page, status_code=exc.status_code)

    @app.exception_handler(AuthError)
    async def auth_error_handler(request: Request, exc: AuthError):
        if exc.kind == AuthError.MISSING_CODE:
            return PlainTextResponse("Missing code", status_code=400)
        if exc.kind == AuthError.ACCESS_DENIED:
            return PlainTextResponse(f"Spotify authorization failed: {exc.detail}", status_code=400)
        return PlainTextResponse("Auth error", status_code=exc.status_code)

    @app.exception_handler(AuthRequiredError)
    async def auth_required_handler(request: Request, exc: AuthRequiredError):
        return JSONResponse(
            {"error": exc.detail, "auth_possible": exc.auth_possible},
            status_code=exc.status_code,
        )

    @app.exception_handler(ProviderError)
    async def provider_error_handler(request: Request, exc: ProviderError):
        return JSONResponse(
            {"error": f"{exc.operation} failed", "details": exc.detail},
            status_code=exc.status_code,
        )

    app.include_router(auth_router)

    @app.get("/now-playing", response_model=PlaybackSnapshot)
    async def now_playing(request: Request) -> PlaybackSnapshot:
        return await request.app.state.playback.snapshot()

    @app.post("/play")
    async def play(request: Request):
        await request.app.state.playback.play()
        return {"success": True}

    @app.post("/pause")
    async def pause(request: Request):
        await request.app.state.playback.pause()
        return {"success": True}

    @app.post("/next")
    async def next_track(request: Request):
        await request.app.state.playback.skip_next()
        return {"success": True}

    @app.post("/previous")
    async def previous_track(request: Request):
        await request.app.state.playback.skip_previous()
        return {"success": True}

    @app.get("/")
    async def index() -> RedirectResponse:
        return RedirectResponse("/index.html", status_code=302)

    # Static mounts go last so the routes above take precedence
    if os.path.isdir(settings.canvas_dir):
        app.mount(CANVAS_URL_PREFIX, StaticFiles(directory=settings.canvas_dir), name="canvas")
    if os.path.isdir(settings.public_dir):
        app.mount("/", StaticFiles(directory=settings.public_dir), name="public")

    return app


def run() -> None:
    import uvicorn

    settings = Settings.from_env()
    logging.basicConfig(
        level=settings.log_level,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    app = create_app(settings)
    log.info("Server listening on http://%s:%d", settings.host, settings.port)
    if settings.missing:
        log.warning("Spotify login disabled, missing %s", ", ".join(settings.missing))
    else:
        log.info("Visit http://%s:%d/login to authenticate Spotify", settings.host, settings.port)
    uvicorn.run(app, host=settings.host, port=settings.port, log_level=settings.log_level.lower())


if __name__ == "__main__":
    run()
