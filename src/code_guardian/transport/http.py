"""
HTTP client for the cloud providers: JSON request/response and line-streamed
bodies over one pooled httpx.AsyncClient.
"""

from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Optional

import httpx

from code_guardian.errors import ProviderError

DEFAULT_TIMEOUT = 60.0
USER_AGENT = "code-guardian/0.1.0"


class HttpClient:
    def __init__(self, timeout: float = DEFAULT_TIMEOUT, transport: Optional[httpx.AsyncBaseTransport] = None):
        self._client = httpx.AsyncClient(
            headers={"User-Agent": USER_AGENT, "Accept": "application/json"},
            timeout=timeout,
            transport=transport,
        )

    @staticmethod
    def _headers(extra: Optional[dict[str, str]]) -> dict[str, str]:
        headers: dict[str, str] = {"Content-Type": "application/json"}
        if extra:
            headers.update(extra)
        return headers

    async def post_json(self, url: str, body: dict[str, Any], headers: Optional[dict[str, str]] = None) -> Any:
        try:
            resp = await self._client.post(url, json=body, headers=self._headers(headers))
        except httpx.HTTPError as e:
            raise ProviderError(f"Request to {url} failed: {e}") from e
        if resp.status_code >= 400:
            raise ProviderError(f"HTTP {resp.status_code}: {resp.text[:500]}", resp.status_code, resp.text)
        try:
            return resp.json()
        except ValueError as e:
            raise ProviderError(f"Invalid JSON from {url}: {resp.text[:200]}", resp.status_code, resp.text) from e

    async def stream_lines(
        self, url: str, body: dict[str, Any], headers: Optional[dict[str, str]] = None,
    ) -> AsyncIterator[str]:
        """Yield response body lines as they arrive.

        Closing the generator (or cancelling the task reading it) closes the
        underlying response and returns the connection to the pool.
        """
        async with self._open_stream(url, body, headers) as resp:
            try:
                async for line in resp.aiter_lines():
                    yield line
            except httpx.HTTPError as e:
                raise ProviderError(f"Stream from {url} interrupted: {e}") from e

    @asynccontextmanager
    async def _open_stream(
        self, url: str, body: dict[str, Any], headers: Optional[dict[str, str]],
    ) -> AsyncIterator[httpx.Response]:
        try:
            async with self._client.stream("POST", url, json=body, headers=self._headers(headers)) as resp:
                if resp.status_code >= 400:
                    await resp.aread()
                    raise ProviderError(f"HTTP {resp.status_code}: {resp.text[:500]}", resp.status_code, resp.text)
                yield resp
        except httpx.HTTPError as e:
            raise ProviderError(f"Request to {url} failed: {e}") from e

    async def close(self) -> None:
        await self._client.aclose()
