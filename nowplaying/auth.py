from __future__ import annotations

import logging
from urllib.parse import quote, unquote

from fastapi import APIRouter, Query, Request
from fastapi.responses import RedirectResponse

from nowplaying.credentials import CredentialStore
from nowplaying.errors import AuthError, ConfigError, ProviderError
from nowplaying.models import AuthState


log = logging.getLogger(__name__)


def decode_return_path(state: str | None) -> str:
    """Recover the local path encoded in ``state``; anything else becomes "/".

    Only same-origin paths are accepted. "//host" and "/\\host" are treated by
    browsers as other hosts, so they are rejected too.
    """
    decoded = unquote(state or "")
    if not decoded.startswith("/") or decoded.startswith(("//", "/\\")):
        return "/"
    return decoded


class AuthFlow:
    """Authorization Code flow: authorize redirect out, code exchange back in.

    ``state`` only carries the return path; it is not a CSRF nonce.
    """

    def __init__(self, store: CredentialStore, provider):
        self.store = store
        self.provider = provider

    def build_authorize_url(self, return_to: str | None = "/") -> str:
        if not self.store.is_configured():
            raise ConfigError("Spotify client id/secret are not set")
        state = quote(return_to or "/", safe="")
        return self.provider.authorize_url(state)

    async def handle_callback(self, code: str | None, state: str | None, error: str | None = None) -> str:
        if error:
            raise AuthError(AuthError.ACCESS_DENIED, error)
        if not code:
            raise AuthError(AuthError.MISSING_CODE, "Missing code")
        try:
            token_info = await self.provider.exchange_code(code)
        except ProviderError as exc:
            log.error("Error exchanging code: %s", exc.detail)
            raise AuthError(AuthError.EXCHANGE_FAILED, exc.detail) from exc
        if not token_info.refresh_token:
            raise AuthError(AuthError.EXCHANGE_FAILED, "No refresh token returned from Spotify")
        self.store.store(token_info.access_token, token_info.refresh_token, token_info.expires_in)
        log.info("Authenticated with Spotify, token expires in %ds", token_info.expires_in)
        return decode_return_path(state)


router = APIRouter()


def get_auth_flow(request: Request) -> AuthFlow:
    return request.app.state.auth_flow


@router.get("/login")
async def login(request: Request, return_to: str = Query("/", alias="returnTo")) -> RedirectResponse:
    """Redirect the user to Spotify's authorization URL."""
    auth_url = get_auth_flow(request).build_authorize_url(return_to)
    return RedirectResponse(auth_url, status_code=302)


@router.get("/callback")
async def callback(request: Request) -> RedirectResponse:
    """Handle Spotify redirect, exchange code for tokens, and go back where the user started."""
    params = dict(request.query_params)
    redirect_to = await get_auth_flow(request).handle_callback(
        params.get("code"), params.get("state"), error=params.get("error")
    )
    return RedirectResponse(redirect_to, status_code=302)


@router.get("/logout")
async def logout(request: Request) -> RedirectResponse:
    get_auth_flow(request).store.clear()
    log.info("Cleared Spotify credentials")
    return RedirectResponse("/", status_code=302)


@router.get("/auth/status", response_model=AuthState)
async def auth_status(request: Request) -> AuthState:
    return get_auth_flow(request).store.auth_state()
