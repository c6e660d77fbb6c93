"""Authenticated HTTP access to the Gmail and Calendar REST APIs."""

import logging
from typing import Any, Protocol

import httpx

from gmail_calendar_mcp.auth import OAuthManager, TokenStatus

logger = logging.getLogger(__name__)

GMAIL_API_BASE = "https://gmail.googleapis.com/gmail/v1"
CALENDAR_API_BASE = "https://www.googleapis.com/calendar/v3"


class ApiClient(Protocol):
    """The request surface the Gmail and Calendar handlers depend on."""

    async def request(
        self,
        method: str,
        url: str,
        params: dict[str, Any] | None = None,
        json_data: dict[str, Any] | None = None,
    ) -> dict[str, Any]: ...

    async def request_no_content(self, method: str, url: str) -> None: ...


class GoogleApiClient:
    """Thin authenticated client shared by the Gmail and Calendar handlers.

    Retries, backoff and timeouts are left to httpx; errors surface as
    ``httpx.HTTPStatusError``.

    Attributes:
        manager: OAuthManager supplying and refreshing access tokens.
    """

    def __init__(self, manager: OAuthManager | None = None) -> None:
        self.manager = manager or OAuthManager()
        self._http_client: httpx.AsyncClient | None = None

    async def __aenter__(self) -> "GoogleApiClient":
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.close()

    async def _get_http_client(self) -> httpx.AsyncClient:
        """Get or create the shared HTTP client with connection pooling."""
        if self._http_client is None:
            self._http_client = httpx.AsyncClient(
                http2=True,
                limits=httpx.Limits(max_connections=100, max_keepalive_connections=20),
                timeout=httpx.Timeout(30.0, connect=10.0),
            )
        return self._http_client

    async def close(self) -> None:
        """Close the shared HTTP client and release resources."""
        if self._http_client:
            await self._http_client.aclose()
            self._http_client = None

    async def _get_access_token(self) -> str:
        """Get a valid access token, refreshing if necessary.

        Raises:
            RuntimeError: If no token is available or refresh fails.
        """
        status = self.manager.storage.get_status(self.manager.account)

        if status == TokenStatus.INVALID:
            raise RuntimeError(
                "Stored OAuth token is invalid or corrupted. "
                "Please re-authenticate using: gmail-calendar-mcp setup"
            )

        token = await self.manager.refresh_if_needed()
        if token is None:
            if status == TokenStatus.MISSING:
                raise RuntimeError(
                    "No OAuth token found. "
                    "Please authenticate first using: gmail-calendar-mcp setup"
                )
            raise RuntimeError(
                "Token refresh failed. Please re-authenticate using: gmail-calendar-mcp setup"
            )
        return token.access_token

    async def _send(
        self,
        method: str,
        url: str,
        params: dict[str, Any] | None = None,
        json_data: dict[str, Any] | None = None,
    ) -> httpx.Response:
        access_token = await self._get_access_token()
        client = await self._get_http_client()

        response = await client.request(
            method=method,
            url=url,
            params=params,
            json=json_data,
            headers={
                "Authorization": f"Bearer {access_token}",
                "Accept": "application/json",
            },
        )
        response.raise_for_status()
        return response

    async def request(
        self,
        method: str,
        url: str,
        params: dict[str, Any] | None = None,
        json_data: dict[str, Any] | None = None,
    ) -> dict[str, Any]:
        """Make an authenticated request and return the JSON response.

        Args:
            method: HTTP method (GET, POST, etc.).
            url: Full URL to request.
            params: Optional query parameters.
            json_data: Optional JSON body data.

        Returns:
            JSON response as a dictionary.

        Raises:
            httpx.HTTPStatusError: If the request fails.
        """
        response = await self._send(method, url, params=params, json_data=json_data)
        result: dict[str, Any] = response.json()
        return result

    async def request_no_content(self, method: str, url: str) -> None:
        """Make an authenticated request whose response has no body (DELETE).

        Raises:
            httpx.HTTPStatusError: If the request fails.
        """
        await self._send(method, url)
