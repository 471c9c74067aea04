"""Signed browser session and OAuth state cookies."""

import secrets
from typing import Any

import structlog
from fastapi import Request, Response
from itsdangerous import BadSignature, SignatureExpired, URLSafeTimedSerializer

from connector_service.config import Settings
from connector_service.infrastructure.redis import CacheService
from shared.constants import SESSION_PROFILE_PREFIX

logger = structlog.get_logger()

STATE_COOKIE_PREFIX = "oauth_state_"


class SessionManager:
    """Reads and writes the signed cookies that identify a browser session.

    The session cookie only carries an opaque id; provider tokens are kept
    server-side in the token store under that id.
    """

    def __init__(self, settings: Settings):
        self.settings = settings
        self._sessions = URLSafeTimedSerializer(settings.secret_key, salt="connector-session")
        self._states = URLSafeTimedSerializer(settings.secret_key, salt="connector-oauth-state")

    @staticmethod
    def new_session_id() -> str:
        return secrets.token_urlsafe(32)

    def read_session_id(self, request: Request) -> str | None:
        cookie = request.cookies.get(self.settings.session_cookie_name)
        if not cookie:
            return None
        try:
            return self._sessions.loads(cookie, max_age=self.settings.session_max_age_seconds)
        except SignatureExpired:
            logger.info("Session cookie expired")
        except BadSignature:
            logger.warning("Session cookie has an invalid signature")
        return None

    def encode_session_id(self, session_id: str) -> str:
        return self._sessions.dumps(session_id)

    def set_session_cookie(self, response: Response, session_id: str) -> None:
        response.set_cookie(
            self.settings.session_cookie_name,
            self.encode_session_id(session_id),
            max_age=self.settings.session_max_age_seconds,
            httponly=True,
            secure=self.settings.cookie_secure,
            samesite="lax",
        )

    # OAuth state ---------------------------------------------------------

    def set_state_cookie(self, response: Response, provider: str, state: str) -> None:
        response.set_cookie(
            f"{STATE_COOKIE_PREFIX}{provider}",
            self._states.dumps(state),
            max_age=self.settings.oauth_state_max_age_seconds,
            httponly=True,
            secure=self.settings.cookie_secure,
            samesite="lax",
        )

    def pop_state(self, request: Request, response: Response, provider: str) -> str | None:
        """Expected state for ``provider``; the cookie is always cleared."""
        name = f"{STATE_COOKIE_PREFIX}{provider}"
        response.delete_cookie(name)
        cookie = request.cookies.get(name)
        if not cookie:
            return None
        try:
            return self._states.loads(cookie, max_age=self.settings.oauth_state_max_age_seconds)
        except BadSignature:
            logger.warning("OAuth state cookie rejected", provider=provider)
            return None


class SessionProfiles:
    """Account profiles of the providers connected in a session."""

    def __init__(self, cache: CacheService, ttl_seconds: int):
        self.cache = cache
        self.ttl_seconds = ttl_seconds

    @staticmethod
    def _key(session_id: str) -> str:
        return f"{SESSION_PROFILE_PREFIX}:{session_id}"

    async def get(self, session_id: str | None) -> dict[str, Any]:
        if not session_id:
            return {}
        return await self.cache.get(self._key(session_id)) or {}

    async def set(self, session_id: str, provider: str, profile: dict[str, Any]) -> None:
        profiles = await self.get(session_id)
        profiles[provider] = profile
        await self.cache.set(self._key(session_id), profiles, ttl_seconds=self.ttl_seconds)

    async def remove(self, session_id: str | None, provider: str) -> None:
        if not session_id:
            return
        profiles = await self.get(session_id)
        if profiles.pop(provider, None) is not None:
            await self.cache.set(self._key(session_id), profiles, ttl_seconds=self.ttl_seconds)
