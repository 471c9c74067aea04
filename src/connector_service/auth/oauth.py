"""OAuth authorization-code flows for Printful and Webflow."""

import secrets
import time
from dataclasses import dataclass, field
from typing import Any
from urllib.parse import urlencode

import httpx
import structlog

from connector_service.clients import PrintfulClient, WebflowClient
from connector_service.config import Settings
from connector_service.errors import OAuthError, ProviderApiError
from shared.constants import PRINTFUL, PROVIDERS, WEBFLOW

logger = structlog.get_logger()


@dataclass(frozen=True)
class OAuthProviderConfig:
    """Endpoints and credentials for one provider's OAuth app."""

    provider: str
    authorize_url: str
    token_url: str
    client_id: str
    client_secret: str
    scopes: str
    redirect_uri: str
    redirect_param: str = "redirect_uri"

    @property
    def is_configured(self) -> bool:
        return bool(self.client_id and self.client_secret)


@dataclass
class OAuthTokens:
    access_token: str
    refresh_token: str | None = None
    token_type: str = "Bearer"
    expires_at: int | None = None

    @property
    def expires_in(self) -> int | None:
        if self.expires_at is None:
            return None
        return max(self.expires_at - int(time.time()), 0)


@dataclass
class OAuthProfile:
    id: str
    name: str
    email: str | None = None
    extra: dict[str, Any] = field(default_factory=dict)


def provider_config(provider: str, settings: Settings) -> OAuthProviderConfig:
    """OAuth config for ``provider``; raises ``ValueError`` for unknown providers."""
    if provider == PRINTFUL:
        return OAuthProviderConfig(
            provider=PRINTFUL,
            authorize_url=f"{settings.printful_oauth_base_url}/authorize",
            token_url=f"{settings.printful_oauth_base_url}/token",
            client_id=settings.printful_client_id,
            client_secret=settings.printful_client_secret,
            scopes=settings.printful_scopes,
            redirect_uri=settings.oauth_redirect_uri(PRINTFUL),
            redirect_param="redirect_url",
        )
    if provider == WEBFLOW:
        return OAuthProviderConfig(
            provider=WEBFLOW,
            authorize_url=f"{settings.webflow_oauth_base_url}/authorize",
            token_url=settings.webflow_token_url,
            client_id=settings.webflow_client_id,
            client_secret=settings.webflow_client_secret,
            scopes=settings.webflow_scopes,
            redirect_uri=settings.oauth_redirect_uri(WEBFLOW),
        )
    raise ValueError(f"Unknown provider: {provider}. Expected one of {PROVIDERS}")


def new_state() -> str:
    return secrets.token_urlsafe(24)


def build_authorize_url(config: OAuthProviderConfig, state: str) -> str:
    params = {
        "client_id": config.client_id,
        "response_type": "code",
        "scope": config.scopes,
        config.redirect_param: config.redirect_uri,
        "state": state,
    }
    return f"{config.authorize_url}?{urlencode(params)}"


def parse_token_response(body: Any) -> OAuthTokens:
    """Accept both flat and ``{"result": {...}}``-nested token responses."""
    if not isinstance(body, dict):
        raise OAuthError("Token endpoint returned an unexpected body")
    nested = body.get("result") if isinstance(body.get("result"), dict) else {}

    access_token = body.get("access_token") or nested.get("access_token")
    if not access_token:
        raise OAuthError("Token response did not include an access token")

    expires_in = body.get("expires_in") or nested.get("expires_in")
    return OAuthTokens(
        access_token=access_token,
        refresh_token=body.get("refresh_token") or nested.get("refresh_token"),
        token_type=body.get("token_type") or nested.get("token_type") or "Bearer",
        expires_at=int(time.time()) + int(expires_in) if expires_in else None,
    )


async def exchange_code(
    config: OAuthProviderConfig,
    code: str,
    *,
    timeout: float = 30.0,
    transport: httpx.AsyncBaseTransport | None = None,
) -> OAuthTokens:
    """Trade an authorization code for tokens at the provider's token endpoint."""
    form = {
        "grant_type": "authorization_code",
        "client_id": config.client_id,
        "client_secret": config.client_secret,
        "code": code,
        config.redirect_param: config.redirect_uri,
    }
    async with httpx.AsyncClient(timeout=timeout, transport=transport) as client:
        try:
            response = await client.post(
                config.token_url, data=form, headers={"Accept": "application/json"}
            )
        except httpx.RequestError as exc:
            raise OAuthError(f"Token exchange with {config.provider} failed: {exc}") from exc

    if response.is_error:
        logger.warning(
            "Token exchange rejected",
            provider=config.provider,
            status=response.status_code,
        )
        raise OAuthError(
            f"Token exchange with {config.provider} failed with status {response.status_code}"
        )
    try:
        body = response.json()
    except ValueError as exc:
        raise OAuthError(f"{config.provider} token endpoint returned invalid JSON") from exc
    return parse_token_response(body)


async def fetch_profile(
    provider: str,
    access_token: str,
    *,
    transport: httpx.AsyncBaseTransport | None = None,
) -> OAuthProfile:
    """Identify the account behind a freshly issued token."""
    if provider == PRINTFUL:
        async with PrintfulClient(access_token, transport=transport) as client:
            try:
                body = await client.whoami()
                store = (body.get("result") or {}).get("store") or body.get("result") or {}
                return OAuthProfile(
                    id=str(store.get("id") or "printful-user"),
                    name=store.get("name") or "Printful Store",
                    email=store.get("email"),
                )
            except ProviderApiError as e:
                logger.info("Printful whoami unavailable, validating via store", error=str(e))
            try:
                await client.list_store_products()
            except ProviderApiError as e:
                raise OAuthError("Failed to validate Printful token") from e
            return OAuthProfile(id="printful-user", name="Printful Store")

    if provider == WEBFLOW:
        async with WebflowClient(access_token, transport=transport) as client:
            try:
                user = await client.authorized_by()
            except ProviderApiError as e:
                raise OAuthError("Failed to fetch Webflow user profile") from e
        if not user.get("id") or not user.get("email"):
            raise OAuthError("Webflow user profile is incomplete")
        name = " ".join(p for p in (user.get("firstName"), user.get("lastName")) if p)
        return OAuthProfile(
            id=user["id"], name=name or user["email"], email=user["email"], extra=user
        )

    raise ValueError(f"Unknown provider: {provider}")

