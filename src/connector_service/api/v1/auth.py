"""OAuth sign-in, callback and session status endpoints."""

from typing import Literal
from urllib.parse import urlencode

import structlog
from fastapi import APIRouter, Depends, Request
from fastapi.responses import RedirectResponse
from pydantic import BaseModel

from connector_service.auth.oauth import (
    build_authorize_url,
    exchange_code,
    fetch_profile,
    new_state,
    provider_config,
)
from connector_service.auth.session import SessionManager, SessionProfiles
from connector_service.config import Settings, get_settings
from connector_service.dependencies import (
    ClientFactory,
    get_client_factory,
    get_session_id,
    get_session_manager,
    get_session_profiles,
    get_token_store,
)
from connector_service.errors import OAuthError, ProviderNotConfiguredError
from connector_service.services.token_store import TokenStore
from shared.constants import PRINTFUL, WEBFLOW

logger = structlog.get_logger()

router = APIRouter()

ProviderName = Literal["printful", "webflow"]

AUTH_ERROR_PATH = "/auth-status"


class SessionResponse(BaseModel):
    """Connection status of the current browser session."""

    printfulConnected: bool
    webflowConnected: bool
    isMultiConnected: bool
    user: dict | None = None


def _error_url(error: str) -> str:
    return f"{AUTH_ERROR_PATH}?{urlencode({'error': error})}"


@router.get("/signin/{provider}")
async def signin(
    provider: ProviderName,
    settings: Settings = Depends(get_settings),
    sessions: SessionManager = Depends(get_session_manager),
) -> RedirectResponse:
    """Redirect the browser to the provider's authorize page."""
    config = provider_config(provider, settings)
    if not config.is_configured:
        logger.warning("Missing OAuth credentials", provider=provider)
        raise ProviderNotConfiguredError(provider)

    state = new_state()
    response = RedirectResponse(build_authorize_url(config, state), status_code=302)
    sessions.set_state_cookie(response, provider, state)
    logger.info("Starting OAuth flow", provider=provider)
    return response


@router.get("/callback/{provider}")
async def callback(
    provider: ProviderName,
    request: Request,
    code: str | None = None,
    state: str | None = None,
    error: str | None = None,
    settings: Settings = Depends(get_settings),
    sessions: SessionManager = Depends(get_session_manager),
    session_id: str | None = Depends(get_session_id),
    tokens: TokenStore = Depends(get_token_store),
    profiles: SessionProfiles = Depends(get_session_profiles),
    factory: ClientFactory = Depends(get_client_factory),
) -> RedirectResponse:
    """Finish the OAuth flow; failures redirect to the auth status page."""
    response = RedirectResponse("/", status_code=302)
    expected_state = sessions.pop_state(request, response, provider)

    if error:
        logger.warning("Provider returned an OAuth error", provider=provider, error=error)
        response.headers["location"] = _error_url(error)
        return response
    if not code:
        response.headers["location"] = _error_url("missing_code")
        return response
    if not state or state != expected_state:
        logger.warning("OAuth state mismatch", provider=provider)
        response.headers["location"] = _error_url("invalid_state")
        return response

    config = provider_config(provider, settings)
    try:
        issued = await exchange_code(
            config, code, timeout=settings.http_timeout_seconds, transport=factory.transport
        )
        profile = await fetch_profile(provider, issued.access_token, transport=factory.transport)
    except OAuthError as e:
        logger.error("OAuth callback failed", provider=provider, error=str(e))
        response.headers["location"] = _error_url("oauth_failed")
        return response

    session_id = session_id or sessions.new_session_id()
    await tokens.store_token(provider, session_id, issued.access_token, issued.expires_in)
    await tokens.store_provider_token(provider, issued.access_token, issued.expires_in)
    await profiles.set(
        session_id,
        provider,
        {"id": profile.id, "name": profile.name, "email": profile.email},
    )
    sessions.set_session_cookie(response, session_id)
    logger.info("Provider connected", provider=provider, account=profile.id)
    return response


@router.get("/session", response_model=SessionResponse)
async def session_status(
    session_id: str | None = Depends(get_session_id),
    tokens: TokenStore = Depends(get_token_store),
    profiles: SessionProfiles = Depends(get_session_profiles),
) -> SessionResponse:
    connected = await tokens.get_session_tokens(session_id)
    printful_connected = bool(connected[PRINTFUL])
    webflow_connected = bool(connected[WEBFLOW])
    user = await profiles.get(session_id)
    return SessionResponse(
        printfulConnected=printful_connected,
        webflowConnected=webflow_connected,
        isMultiConnected=printful_connected and webflow_connected,
        user=user or None,
    )


@router.post("/disconnect/{provider}")
async def disconnect(
    provider: ProviderName,
    session_id: str | None = Depends(get_session_id),
    tokens: TokenStore = Depends(get_token_store),
    profiles: SessionProfiles = Depends(get_session_profiles),
) -> dict:
    await tokens.disconnect(provider, session_id)
    await profiles.remove(session_id, provider)
    return {"success": True, "provider": provider}
