"""Exception types shared by the API clients, services and routes."""

from typing import Any


class ConnectorError(Exception):
    """Base class for connector failures."""

    status_code: int = 500

    def __init__(self, message: str, *, status_code: int | None = None) -> None:
        super().__init__(message)
        self.message = message
        if status_code is not None:
            self.status_code = status_code


class ProviderApiError(ConnectorError):
    """A vendor API call failed (transport error, non-2xx, or invalid body)."""

    def __init__(
        self,
        provider: str,
        message: str,
        *,
        status_code: int = 502,
        details: Any = None,
    ) -> None:
        super().__init__(message, status_code=status_code)
        self.provider = provider
        self.details = details

    def __str__(self) -> str:
        return f"{self.provider}: {self.message}"


class NotConnectedError(ConnectorError):
    """One or more providers have no access token for the caller."""

    status_code = 401

    def __init__(self, *providers: str) -> None:
        self.providers = providers
        names = " and ".join(p.capitalize() for p in providers)
        if len(providers) > 1:
            message = f"Authentication required for both {names}"
        else:
            message = f"{names} authentication required"
        super().__init__(message)


class OAuthError(ConnectorError):
    """Authorization-code exchange or callback validation failed."""

    status_code = 400


class NotFoundError(ConnectorError):
    status_code = 404


class InvalidOrderError(ConnectorError):
    """A Webflow order cannot be translated into a Printful order."""

    status_code = 422


class ProviderNotConfiguredError(ConnectorError):
    """OAuth credentials for a provider are missing from the settings."""

    status_code = 503

    def __init__(self, provider: str) -> None:
        super().__init__(f"{provider.capitalize()} OAuth is not configured")
        self.provider = provider


class BadRequestError(ConnectorError):
    """A request is missing a required parameter."""

    status_code = 400
