"""Tests for the in-memory credential store and its refresh decision."""

import asyncio
import logging

import pytest

from nowplaying.credentials import REFRESH_BUFFER_SECONDS, CredentialStore
from nowplaying.errors import AuthError, ProviderError
from nowplaying.models import TokenInfo


@pytest.fixture
def cred_store(settings, provider, clock):
    return CredentialStore(settings, provider, clock=clock)


class TestConfigured:
    def test_configured_with_id_and_secret(self, cred_store):
        assert cred_store.is_configured() is True

    def test_unconfigured_without_secret(self, settings, provider, clock):
        partial = settings.model_copy(update={"client_secret": None})
        assert CredentialStore(partial, provider, clock=clock).is_configured() is False

    def test_auth_state_is_derived(self, cred_store):
        assert cred_store.auth_state().model_dump() == {"configured": True, "authenticated": False}
        cred_store.store("a", "r", 60)
        assert cred_store.auth_state().authenticated is True


class TestStore:
    def test_starts_empty(self, cred_store):
        assert cred_store.has_access_token() is False
        assert cred_store.credential is None

    def test_store_then_has_access_token(self, cred_store):
        cred_store.store("a", "r", 0)
        assert cred_store.has_access_token() is True

    def test_expiry_derived_from_now(self, cred_store, clock):
        cred_store.store("a", "r", 3600)
        assert cred_store.credential.expires_at == clock.now + 3600

    def test_store_replaces_whole_credential(self, cred_store):
        cred_store.store("a", "r", 60)
        first = cred_store.credential
        cred_store.store("b", "s", 120)
        assert first.access_token == "a"
        assert cred_store.credential.access_token == "b"
        assert cred_store.credential.refresh_token == "s"

    def test_clear(self, cred_store):
        cred_store.store("a", "r", 60)
        cred_store.clear()
        assert cred_store.has_access_token() is False


class TestNeedsRefresh:
    def test_false_without_refresh_token(self, cred_store):
        assert cred_store.needs_refresh() is False

    def test_false_well_before_expiry(self, cred_store, clock):
        cred_store.store("a", "r", 3600)
        clock.advance(3600 - REFRESH_BUFFER_SECONDS - 1)
        assert cred_store.needs_refresh() is False

    def test_true_at_buffer_boundary(self, cred_store, clock):
        cred_store.store("a", "r", 3600)
        clock.advance(3600 - REFRESH_BUFFER_SECONDS)
        assert cred_store.needs_refresh() is True

    def test_true_after_expiry(self, cred_store, clock):
        cred_store.store("a", "r", 3600)
        clock.advance(4000)
        assert cred_store.needs_refresh() is True
        assert cred_store.is_expired() is True


class TestEnsureFresh:
    @pytest.mark.anyio
    async def test_noop_when_nothing_stored(self, cred_store, provider):
        await cred_store.ensure_fresh()
        assert provider.calls == []

    @pytest.mark.anyio
    async def test_noop_when_token_still_valid(self, cred_store, provider):
        cred_store.store("a", "r", 3600)
        await cred_store.ensure_fresh()
        assert provider.calls == []

    @pytest.mark.anyio
    async def test_refreshes_near_expiry(self, cred_store, provider, clock):
        cred_store.store("a", "r", 3600)
        clock.advance(3590)
        await cred_store.ensure_fresh()
        assert provider.calls == [("refresh", "r")]
        assert cred_store.access_token == "access-2"
        # refresh token kept when Spotify does not rotate it
        assert cred_store.credential.refresh_token == "r"
        assert cred_store.credential.expires_at == clock.now + 3600

    @pytest.mark.anyio
    async def test_rotated_refresh_token_is_kept(self, cred_store, provider, clock):
        provider.refresh_result = TokenInfo(access_token="x", refresh_token="r2", expires_in=60)
        cred_store.store("a", "r", 10)
        await cred_store.ensure_fresh()
        assert cred_store.credential.refresh_token == "r2"

    @pytest.mark.anyio
    async def test_failure_keeps_previous_state(self, cred_store, provider, clock, caplog):
        provider.fail_with = ProviderError("refresh", "invalid_grant")
        cred_store.store("a", "r", 10)
        before = cred_store.credential
        with caplog.at_level(logging.ERROR):
            with pytest.raises(AuthError) as excinfo:
                await cred_store.ensure_fresh()
        assert excinfo.value.kind == AuthError.REFRESH_FAILED
        assert excinfo.value.detail == "invalid_grant"
        assert cred_store.credential is before
        assert "Failed to refresh token" in caplog.text

    @pytest.mark.anyio
    async def test_concurrent_callers_share_one_refresh(self, cred_store, provider, clock):
        gate = asyncio.Event()
        original = provider.refresh

        async def slow_refresh(refresh_token):
            await gate.wait()
            return await original(refresh_token)

        provider.refresh = slow_refresh
        cred_store.store("a", "r", 10)

        first = asyncio.ensure_future(cred_store.ensure_fresh())
        second = asyncio.ensure_future(cred_store.ensure_fresh())
        await asyncio.sleep(0)
        gate.set()
        await asyncio.gather(first, second)

        assert provider.names() == ["refresh"]
        assert cred_store.access_token == "access-2"

    @pytest.mark.anyio
    async def test_unexpected_refresh_error_is_auth_error(self, cred_store, provider):
        provider.fail_with = ValueError("malformed token response")
        cred_store.store("a", "r", 10)
        before = cred_store.credential
        with pytest.raises(AuthError) as excinfo:
            await cred_store.ensure_fresh()
        assert excinfo.value.kind == AuthError.REFRESH_FAILED
        assert excinfo.value.detail == "malformed token response"
        assert cred_store.credential is before

    @pytest.mark.anyio
    async def test_logout_during_refresh_is_not_undone(self, cred_store, provider):
        original = provider.refresh

        async def refresh_then_logout(refresh_token):
            result = await original(refresh_token)
            cred_store.clear()
            return result

        provider.refresh = refresh_then_logout
        cred_store.store("a", "r", 10)
        await cred_store.ensure_fresh()
        assert cred_store.credential is None
        assert cred_store.has_access_token() is False
