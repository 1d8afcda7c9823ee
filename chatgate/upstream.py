from __future__ import annotations

import logging
from typing import Any, AsyncIterator

import httpx

from .config import Settings
from .errors import UpstreamError

logger = logging.getLogger(__name__)


class UpstreamStream:
    """An accepted upstream response whose body has not been read yet.

    Iterating yields the body chunks as they arrive. ``aclose`` releases the
    upstream connection and is safe to call more than once.
    """

    def __init__(self, response: httpx.Response, client: httpx.AsyncClient) -> None:
        self._response = response
        self._client = client
        self.closed = False

    @property
    def status_code(self) -> int:
        return self._response.status_code

    async def __aiter__(self) -> AsyncIterator[bytes]:
        async for chunk in self._response.aiter_bytes():
            yield chunk

    async def aclose(self) -> None:
        if self.closed:
            return
        self.closed = True
        try:
            await self._response.aclose()
        finally:
            await self._client.aclose()


class ProviderClient:
    """HTTP client wrapper for the provider's /chat/completions API."""

    def __init__(
        self, settings: Settings, transport: httpx.AsyncBaseTransport | None = None
    ) -> None:
        self._settings = settings
        self._transport = transport

    @classmethod
    def from_settings(cls, settings: Settings) -> "ProviderClient":
        return cls(settings)

    @property
    def url(self) -> str:
        return f"{self._settings.provider_base_url}{self._settings.provider_path}"

    def _headers(self) -> dict[str, str]:
        headers = {"Content-Type": "application/json", "Accept": "text/event-stream"}
        if self._settings.provider_api_key:
            headers["Authorization"] = f"Bearer {self._settings.provider_api_key}"
        return headers

    def _client(self, timeout: float) -> httpx.AsyncClient:
        return httpx.AsyncClient(timeout=timeout, transport=self._transport)

    async def open_stream(self, payload: dict[str, Any]) -> UpstreamStream:
        """Send one streaming completion request and return the open body.

        A non-success status is read in full and raised as UpstreamError, so
        nothing from a failed call is ever handed to the caller.
        """
        client = self._client(self._settings.request_timeout)
        request = client.build_request(
            "POST", self.url, headers=self._headers(), json=payload
        )
        try:
            resp = await client.send(request, stream=True)
        except httpx.RequestError as exc:
            await client.aclose()
            raise UpstreamError("Upstream request failed", detail=str(exc)) from exc
        except BaseException:
            await client.aclose()
            raise

        if not resp.is_success:
            received = bytearray()
            try:
                async for chunk in resp.aiter_bytes():
                    received.extend(chunk)
                text = received.decode(errors="replace")
            except httpx.HTTPError as exc:
                logger.warning("Reading upstream error body failed: %s", exc)
                partial = received.decode(errors="replace")
                text = f"HTTP {resp.status_code}: {partial} (body read failed: {exc})"
            finally:
                await resp.aclose()
                await client.aclose()
            logger.warning("Upstream returned %s", resp.status_code)
            raise UpstreamError("Upstream API error", detail=text)

        return UpstreamStream(resp, client)

    async def ping(self) -> bool:
        """Check upstream reachability with a simple GET."""
        url = f"{self._settings.provider_base_url}/"
        try:
            async with self._client(timeout=5.0) as client:
                resp = await client.get(url)
            return resp.status_code < 500
        except httpx.HTTPError:
            return False
