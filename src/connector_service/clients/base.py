"""Shared plumbing for the vendor REST clients."""

from typing import Any

import httpx
import structlog

from connector_service.errors import ProviderApiError

logger = structlog.get_logger()


class ApiClient:
    """Bearer-authenticated JSON client for one vendor API.

    Subclasses set ``provider`` and may override ``_error_message`` to pull a
    readable message out of the vendor's error body.
    """

    provider: str = ""

    def __init__(
        self,
        access_token: str,
        base_url: str,
        *,
        timeout: float = 30.0,
        transport: httpx.AsyncBaseTransport | None = None,
        extra_headers: dict[str, str] | None = None,
    ) -> None:
        headers = {
            "Authorization": f"Bearer {access_token}",
            "Accept": "application/json",
        }
        if extra_headers:
            headers.update(extra_headers)
        self._client = httpx.AsyncClient(
            base_url=base_url.rstrip("/"),
            headers=headers,
            timeout=timeout,
            transport=transport,
        )

    async def __aenter__(self):
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._client.aclose()

    def _error_message(self, body: Any, response: httpx.Response) -> str:
        return f"{response.status_code} {response.reason_phrase}"

    async def _request(
        self,
        method: str,
        path: str,
        *,
        params: dict[str, Any] | None = None,
        json: Any = None,
    ) -> Any:
        try:
            response = await self._client.request(method, path, params=params, json=json)
        except httpx.RequestError as exc:
            raise ProviderApiError(
                self.provider, f"Network error while calling {self.provider}: {exc}"
            ) from exc

        if response.status_code == 204 or not response.content:
            if response.is_error:
                raise ProviderApiError(
                    self.provider,
                    f"{response.status_code} {response.reason_phrase}",
                    status_code=response.status_code,
                )
            return {}

        try:
            body = response.json()
        except ValueError as exc:
            if response.is_error:
                raise ProviderApiError(
                    self.provider,
                    f"{response.status_code} {response.reason_phrase}",
                    status_code=response.status_code,
                    details=response.text,
                ) from exc
            raise ProviderApiError(
                self.provider, f"{self.provider} returned invalid JSON", details=response.text
            ) from exc

        if response.is_error:
            message = self._error_message(body, response)
            logger.warning(
                "Provider API call failed",
                provider=self.provider,
                method=method,
                path=path,
                status=response.status_code,
                error=message,
            )
            raise ProviderApiError(
                self.provider, message, status_code=response.status_code, details=body
            )
        return body
