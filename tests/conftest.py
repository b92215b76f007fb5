"""Shared fixtures: a fake Spotify provider, a hand-driven clock, and app wiring."""

from urllib.parse import urlencode

import pytest
from fastapi.testclient import TestClient

from nowplaying.config import Settings
from nowplaying.main import create_app
from nowplaying.models import TokenInfo


class FakeClock:
    def __init__(self, now: float = 1_700_000_000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class FakeProvider:
    """Records every call; behaviour is set by assigning attributes."""

    def __init__(self):
        self.calls = []
        self.exchange_result = TokenInfo(access_token="access-1", refresh_token="refresh-1", expires_in=3600)
        self.refresh_result = TokenInfo(access_token="access-2", expires_in=3600)
        self.playback = None
        self.fail_with = None

    def authorize_url(self, state: str) -> str:
        self.calls.append(("authorize_url", state))
        return "https://accounts.spotify.com/authorize?" + urlencode({"state": state})

    async def exchange_code(self, code):
        self.calls.append(("exchange_code", code))
        return self._result(self.exchange_result)

    async def refresh(self, refresh_token):
        self.calls.append(("refresh", refresh_token))
        return self._result(self.refresh_result)

    async def current_playback(self, access_token):
        self.calls.append(("current_playback", access_token))
        return self._result(self.playback)

    async def play(self, access_token):
        self.calls.append(("play", access_token))
        self._result(None)

    async def pause(self, access_token):
        self.calls.append(("pause", access_token))
        self._result(None)

    async def next_track(self, access_token):
        self.calls.append(("next_track", access_token))
        self._result(None)

    async def previous_track(self, access_token):
        self.calls.append(("previous_track", access_token))
        self._result(None)

    def _result(self, value):
        if self.fail_with is not None:
            raise self.fail_with
        return value

    def names(self):
        return [c[0] for c in self.calls]


@pytest.fixture
def anyio_backend():
    return "asyncio"


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def provider():
    return FakeProvider()


@pytest.fixture
def settings(tmp_path):
    return Settings(
        client_id="client-id",
        client_secret="client-secret",
        public_dir=str(tmp_path / "public"),
        canvas_map_file=str(tmp_path / "canvas.json"),
    )


@pytest.fixture
def unconfigured_settings(tmp_path):
    return Settings(
        public_dir=str(tmp_path / "public"),
        canvas_map_file=str(tmp_path / "canvas.json"),
    )


@pytest.fixture
def app(settings, provider, clock):
    return create_app(settings, provider=provider, clock=clock)


@pytest.fixture
def store(app):
    return app.state.store


@pytest.fixture
def client(app):
    with TestClient(app) as c:
        yield c


@pytest.fixture
def logged_in(store):
    store.store("access-1", "refresh-1", 3600)
    return store
