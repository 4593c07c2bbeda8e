"""HTTP request channel transport (httpx)."""

from __future__ import annotations

import logging
from typing import Any

import httpx

from ..protocol.requests import OutboundRequest

logger = logging.getLogger(__name__)


class HTTPRequestTransport:
    """Sends OutboundRequests with an httpx.AsyncClient.

    The server only acknowledges the request here (e.g. "requestQueued");
    the actual result is pushed later over the push channel.

    The client is created lazily on first send unless one is injected,
    which is how tests run against an ASGI app in-process.
    """

    def __init__(
        self,
        base_url: str = "http://localhost:4567",
        timeout: float = 30.0,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self.base_url = base_url
        self.timeout = timeout
        self._client = client
        self._owns_client = client is None

    async def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(base_url=self.base_url, timeout=self.timeout)
            self._owns_client = True
        return self._client

    async def send(self, request: OutboundRequest) -> Any:
        """Send the request and return the decoded acknowledgement.

        Returns:
            Decoded JSON body, the raw text for non-JSON bodies,
            or None for an empty body

        Raises:
            httpx.HTTPError: Network failure or non-2xx status
        """
        client = await self._get_client()
        response = await client.request(
            request.method,
            request.url,
            params=request.params or None,
            json=request.body if request.has_body and request.body else None,
            headers=request.headers or None,
        )
        response.raise_for_status()
        logger.debug(f"{request.method} {request.url} -> {response.status_code}")

        if not response.content:
            return None
        try:
            return response.json()
        except ValueError:
            return response.text

    async def close(self) -> None:
        """Close the client if this transport created it."""
        if self._client is not None and self._owns_client:
            await self._client.aclose()
            self._client = None

    async def __aenter__(self) -> HTTPRequestTransport:
        await self._get_client()
        return self

    async def __aexit__(self, *args: Any) -> None:
        await self.close()
