"""Content-addressed upload orchestration.

Per call: RECEIVED -> HASHED -> FOUND_EXISTING -> RETURNED, or
RECEIVED -> HASHED -> STORING -> STORED -> URL_RESOLVED -> RETURNED.
Any step may end in FAILED by raising a GatewayError.
"""

from __future__ import annotations

import logging
from typing import Any

from .addressing import content_digest, derive_object_key
from .errors import ConflictError, ContentReadError, StorageError
from .models import UploadResult
from .storage import ObjectStore

logger = logging.getLogger(__name__)

DEFAULT_CONTENT_TYPE = "application/octet-stream"


async def _read_all(source: Any) -> bytes:
    if isinstance(source, (bytes, bytearray)):
        return bytes(source)
    try:
        return await source.read()
    except OSError as exc:
        raise ContentReadError("Failed to read uploaded file", detail=str(exc)) from exc


class UploadService:
    def __init__(self, store: ObjectStore) -> None:
        self._store = store

    async def _resolve_url(self, key: str) -> str:
        url = await self._store.public_url(key)
        if not url:
            raise StorageError("Failed to resolve file URL", detail="No public URL returned")
        return url

    async def upload(
        self, source: Any, filename: str, content_type: str | None = None
    ) -> UploadResult:
        """Store ``source`` under its content-derived key unless already present.

        ``source`` is either the bytes themselves or an object with an async
        ``read()`` such as FastAPI's ``UploadFile``. Losing a concurrent write
        race to an identical upload is not an error: the winner's object is
        returned instead.
        """
        data = await _read_all(source)
        digest = content_digest(data)
        key = derive_object_key(filename, digest)
        content_type = content_type or DEFAULT_CONTENT_TYPE
        logger.debug("Hashed %s -> %s", filename, key)

        def result(url: str, preexisting: bool) -> UploadResult:
            return UploadResult(
                object_key=key,
                public_url=url,
                file_name=filename,
                content_type=content_type,
                size_bytes=len(data),
                was_preexisting=preexisting,
            )

        if await self._store.find_by_name(key):
            logger.info("Upload of %s matched existing object %s", filename, key)
            return result(await self._resolve_url(key), preexisting=True)

        try:
            await self._store.put_if_absent(key, data, content_type)
        except ConflictError:
            logger.info("Concurrent upload already stored %s", key)
            return result(await self._resolve_url(key), preexisting=True)

        logger.debug("Stored %s, resolving URL", key)
        return result(await self._resolve_url(key), preexisting=False)
