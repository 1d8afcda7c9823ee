from __future__ import annotations

import logging
from typing import Any, AsyncGenerator

import anyio
import httpx
from fastapi.responses import StreamingResponse
from starlette.types import Receive, Scope, Send

from .config import Settings
from .errors import ConfigurationError
from .models import CompletionRequest
from .upstream import ProviderClient, UpstreamStream

logger = logging.getLogger(__name__)

STREAM_HEADERS = {
    "Cache-Control": "no-cache",
    "Connection": "keep-alive",
    "X-Accel-Buffering": "no",
}


class RelayGateway:
    """Opens one upstream completion stream per request. Never retries."""

    def __init__(self, settings: Settings, provider: ProviderClient) -> None:
        self._settings = settings
        self._provider = provider

    def _build_payload(self, request: CompletionRequest) -> dict[str, Any]:
        return {
            "model": self._settings.provider_model,
            "stream": True,
            "messages": request.provider_messages(),
        }

    async def relay(self, request: CompletionRequest) -> UpstreamStream:
        if not self._settings.provider_api_key:
            raise ConfigurationError("Missing provider API key")

        logger.info("Relaying completion with %d messages", len(request.messages))
        return await self._provider.open_stream(self._build_payload(request))


class RelayResponse(StreamingResponse):
    """Event-stream response that forwards upstream chunks untouched.

    The upstream stream is closed when the response ends for any reason,
    including the caller disconnecting mid-stream.
    """

    def __init__(self, upstream: UpstreamStream) -> None:
        self.upstream = upstream
        self.chunks_sent = 0
        super().__init__(
            self._forward(), media_type="text/event-stream", headers=STREAM_HEADERS
        )

    async def _forward(self) -> AsyncGenerator[bytes, None]:
        try:
            async for chunk in self.upstream:
                self.chunks_sent += 1
                yield chunk
        except httpx.HTTPError:
            logger.exception("Upstream stream failed after %d chunks", self.chunks_sent)
            raise

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        try:
            await super().__call__(scope, receive, send)
        finally:
            with anyio.CancelScope(shield=True):
                await self.body_iterator.aclose()
                await self.upstream.aclose()
            logger.info("Relay closed after %d chunks", self.chunks_sent)
