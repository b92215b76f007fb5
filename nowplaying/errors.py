"""Error taxonomy shared by the auth flow, the playback proxy and the HTTP layer.

Every error carries an explicit ``kind`` and an opaque ``detail`` string.
Upstream exceptions are converted at the provider boundary and never
re-raised as-is.
"""

from __future__ import annotations


class NowPlayingError(Exception):
    status_code = 500
    kind = "error"

    def __init__(self, detail: str = "", kind: str | None = None):
        super().__init__(detail or self.kind)
        if kind is not None:
            self.kind = kind
        self.detail = detail


class ConfigError(NowPlayingError):
    """OAuth client id/secret are not set up."""

    status_code = 400
    kind = "not_configured"


class AuthError(NowPlayingError):
    MISSING_CODE = "missing_code"
    EXCHANGE_FAILED = "exchange_failed"
    ACCESS_DENIED = "access_denied"
    REFRESH_FAILED = "refresh_failed"

    def __init__(self, kind: str, detail: str = ""):
        super().__init__(detail, kind=kind)
        self.status_code = 500 if kind in (self.EXCHANGE_FAILED, self.REFRESH_FAILED) else 400


class AuthRequiredError(NowPlayingError):
    """No usable access token; ``auth_possible`` tells the client whether /login can work."""

    status_code = 401
    kind = "auth_required"

    def __init__(self, auth_possible: bool):
        super().__init__("Not authenticated. Visit /login")
        self.auth_possible = auth_possible


class ProviderError(NowPlayingError):
    kind = "provider"

    def __init__(self, operation: str, detail: str):
        super().__init__(detail or "unknown provider error")
        self.operation = operation


class AssetLookupError(NowPlayingError):
    kind = "asset_lookup"
