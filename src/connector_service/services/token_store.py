"""Provider access-token storage.

Tokens are kept per browser session (``auth:<provider>:token:<session_id>``)
and once per provider (``auth:<provider>:token``). The provider-level token is
what webhooks and scheduled jobs use, since they have no browser session.
"""

import time

import structlog

from connector_service.config import get_settings
from connector_service.infrastructure.redis import CacheService
from shared.constants import PRINTFUL, PROVIDERS, TOKEN_KEY_PREFIXES, WEBFLOW

logger = structlog.get_logger()

# provider key -> (token, monotonic expiry), shared by every TokenStore in the process
_provider_token_cache: dict[str, tuple[str, float]] = {}


def clear_provider_token_cache() -> None:
    _provider_token_cache.clear()


def _provider_key(provider: str) -> str:
    try:
        return TOKEN_KEY_PREFIXES[provider]
    except KeyError:
        raise ValueError(f"Unknown provider: {provider}") from None


def token_preview(token: str | None) -> str | None:
    """First ten characters of a token, for logs and status pages."""
    if not token:
        return None
    return f"{token[:10]}..."


class TokenStore:
    """Stores OAuth access tokens for Printful and Webflow."""

    def __init__(
        self,
        cache: CacheService,
        ttl_seconds: int | None = None,
        provider_cache_seconds: int | None = None,
    ):
        settings = get_settings()
        self.cache = cache
        self.ttl_seconds = ttl_seconds or settings.token_ttl_seconds
        self.provider_cache_seconds = (
            provider_cache_seconds
            if provider_cache_seconds is not None
            else settings.provider_token_cache_seconds
        )
        self._provider_cache = _provider_token_cache

    async def store_token(
        self,
        provider: str,
        session_id: str,
        token: str,
        expiry_seconds: int | None = None,
    ) -> None:
        key = f"{_provider_key(provider)}:{session_id}"
        await self.cache.set(key, token, ttl_seconds=expiry_seconds or self.ttl_seconds)
        logger.info("Stored provider token", provider=provider, preview=token_preview(token))

    async def get_token(self, provider: str, session_id: str | None) -> str | None:
        if not session_id:
            return None
        token = await self.cache.get(f"{_provider_key(provider)}:{session_id}")
        return token or None

    async def store_provider_token(
        self,
        provider: str,
        token: str,
        expiry_seconds: int | None = None,
    ) -> None:
        """Store a session-less token; an empty token disconnects the provider."""
        key = _provider_key(provider)
        self._provider_cache.pop(key, None)
        await self.cache.set(key, token, ttl_seconds=expiry_seconds or self.ttl_seconds)

    async def get_provider_token(self, provider: str) -> str | None:
        key = _provider_key(provider)
        cached = self._provider_cache.get(key)
        if cached and cached[1] > time.monotonic():
            return cached[0]

        token = await self.cache.get(key)
        if not token:
            return None
        if self.provider_cache_seconds:
            self._provider_cache[key] = (token, time.monotonic() + self.provider_cache_seconds)
        return token

    async def get_provider_tokens(self) -> dict[str, str | None]:
        values = await self.cache.get_many([_provider_key(p) for p in PROVIDERS])
        return {provider: value or None for provider, value in zip(PROVIDERS, values)}

    async def get_session_tokens(self, session_id: str | None) -> dict[str, str | None]:
        return {
            PRINTFUL: await self.get_token(PRINTFUL, session_id),
            WEBFLOW: await self.get_token(WEBFLOW, session_id),
        }

    async def disconnect(self, provider: str, session_id: str | None = None) -> None:
        if session_id:
            await self.cache.delete(f"{_provider_key(provider)}:{session_id}")
        await self.store_provider_token(provider, "")
        logger.info("Provider disconnected", provider=provider)
