from __future__ import annotations

import asyncio
import json
from typing import Any, AsyncGenerator

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse, StreamingResponse

app = FastAPI()

CHUNK_SIZE = 24


def _build_reply(messages: list[dict[str, Any]]) -> str:
    last_user = next(
        (m.get("content", "") for m in reversed(messages) if m.get("role") == "user"),
        "",
    )
    return f"You said: {last_user}"


def _delta_frame(model: str, text: str) -> str:
    data = {
        "object": "chat.completion.chunk",
        "model": model,
        "choices": [{"index": 0, "delta": {"content": text}}],
    }
    return f"data: {json.dumps(data)}\n\n"


async def _event_stream(model: str, text: str) -> AsyncGenerator[str, None]:
    for i in range(0, len(text), CHUNK_SIZE):
        yield _delta_frame(model, text[i : i + CHUNK_SIZE])
        await asyncio.sleep(0.01)
    yield "data: [DONE]\n\n"


@app.post("/v1/chat/completions")
async def chat_completions(request: Request):
    if not request.headers.get("authorization", "").startswith("Bearer "):
        return JSONResponse(
            status_code=401, content={"error": {"message": "Missing bearer token"}}
        )

    body: dict[str, Any] = await request.json()
    if not body.get("stream", False):
        return JSONResponse(
            status_code=400, content={"error": {"message": "stream=true is required"}}
        )

    reply = _build_reply(body.get("messages", []))
    return StreamingResponse(
        _event_stream(body.get("model", "mock"), reply), media_type="text/event-stream"
    )
