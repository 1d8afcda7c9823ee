"""Object store collaborator for uploaded files.

``SupabaseStorage`` talks to the Supabase Storage REST API of a single
bucket. Writes are sent with upsert disabled, so an existing object is
never overwritten and a duplicate write surfaces as ``ConflictError``.
"""

from __future__ import annotations

import logging
from typing import Any, Protocol
from urllib.parse import quote

import httpx

from .config import Settings
from .errors import ConfigurationError, ConflictError, StorageError

logger = logging.getLogger(__name__)


class ObjectStore(Protocol):
    async def find_by_name(self, key: str) -> bool: ...

    async def put_if_absent(self, key: str, data: bytes, content_type: str) -> None: ...

    async def public_url(self, key: str) -> str: ...


def _is_duplicate(resp: httpx.Response) -> bool:
    if resp.status_code == 409:
        return True
    if resp.status_code != 400:
        return False
    try:
        body = resp.json()
    except ValueError:
        return False
    if not isinstance(body, dict):
        return False
    return str(body.get("statusCode")) == "409" or body.get("error") == "Duplicate"


def _error_text(resp: httpx.Response) -> str:
    try:
        body = resp.json()
    except ValueError:
        return resp.text or f"HTTP {resp.status_code}"
    if isinstance(body, dict):
        return str(body.get("message") or body.get("error") or body)
    return str(body)


class SupabaseStorage:
    def __init__(
        self, settings: Settings, transport: httpx.AsyncBaseTransport | None = None
    ) -> None:
        self._settings = settings
        self._transport = transport

    @classmethod
    def from_settings(cls, settings: Settings) -> "SupabaseStorage":
        return cls(settings)

    @property
    def bucket(self) -> str:
        return self._settings.storage_bucket

    def _base_url(self) -> str:
        if not self._settings.storage_url or not self._settings.storage_key:
            raise ConfigurationError(
                "Missing storage credentials", detail="Set STORAGE_URL and STORAGE_KEY"
            )
        return f"{self._settings.storage_url}/storage/v1"

    def _headers(self) -> dict[str, str]:
        key = self._settings.storage_key or ""
        return {"Authorization": f"Bearer {key}", "apikey": key}

    async def _post(self, url: str, **kwargs: Any) -> httpx.Response:
        try:
            async with httpx.AsyncClient(
                timeout=self._settings.storage_timeout, transport=self._transport
            ) as client:
                return await client.post(url, **kwargs)
        except httpx.RequestError as exc:
            raise StorageError("Storage request failed", detail=str(exc)) from exc

    async def find_by_name(self, key: str) -> bool:
        url = f"{self._base_url()}/object/list/{self.bucket}"
        payload = {"prefix": "", "search": key, "limit": 100, "offset": 0}
        resp = await self._post(url, headers=self._headers(), json=payload)
        if not resp.is_success:
            raise StorageError("Failed to list objects", detail=_error_text(resp))

        entries = resp.json()
        # search is a prefix match; only an exact name counts
        return any(entry.get("name") == key for entry in entries or [])

    async def put_if_absent(self, key: str, data: bytes, content_type: str) -> None:
        url = f"{self._base_url()}/object/{self.bucket}/{quote(key)}"
        headers = self._headers()
        headers["Content-Type"] = content_type
        headers["x-upsert"] = "false"
        resp = await self._post(url, headers=headers, content=data)
        if _is_duplicate(resp):
            raise ConflictError("Object already exists", detail=key)
        if not resp.is_success:
            raise StorageError("File upload failed", detail=_error_text(resp))
        logger.info("Stored %s (%d bytes) in %s", key, len(data), self.bucket)

    async def public_url(self, key: str) -> str:
        if not self._settings.storage_url:
            return ""
        return (
            f"{self._settings.storage_url}/storage/v1/object/public/"
            f"{self.bucket}/{quote(key)}"
        )
