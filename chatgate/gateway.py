from __future__ import annotations

import logging

from fastapi import FastAPI, File, Request, UploadFile
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from .config import get_settings
from .errors import GatewayError, RequestError, error_response
from .models import CompletionRequest, UploadResponse
from .relay import RelayGateway, RelayResponse
from .storage import ObjectStore, SupabaseStorage
from .upstream import ProviderClient
from .uploads import UploadService

logger = logging.getLogger(__name__)


def _describe_validation(exc: RequestValidationError) -> str:
    parts = []
    for err in exc.errors():
        loc = ".".join(str(p) for p in err.get("loc", ()) if p != "body")
        parts.append(f"{loc}: {err.get('msg')}" if loc else str(err.get("msg")))
    return "; ".join(parts)


def create_app(
    provider_client: ProviderClient | None = None, store: ObjectStore | None = None
) -> FastAPI:
    settings = get_settings()
    provider = provider_client or ProviderClient.from_settings(settings)
    relay = RelayGateway(settings, provider)
    uploads = UploadService(store or SupabaseStorage.from_settings(settings))
    app = FastAPI(title="chatgate")

    @app.exception_handler(GatewayError)
    async def gateway_error_handler(request: Request, exc: GatewayError) -> JSONResponse:
        logger.warning("%s %s failed: %s", request.method, request.url.path, exc.message)
        return error_response(exc)

    @app.exception_handler(RequestValidationError)
    async def validation_error_handler(
        request: Request, exc: RequestValidationError
    ) -> JSONResponse:
        return await gateway_error_handler(
            request, RequestError("Invalid request body", detail=_describe_validation(exc))
        )

    @app.get("/healthz")
    async def healthz():
        return {"status": "ok", "scope": "gateway"}

    @app.get("/upstream-health")
    async def upstream_health():
        ok = await provider.ping()
        return {"status": "ok" if ok else "degraded", "upstream": ok}

    @app.post("/chat")
    async def chat(req: CompletionRequest):
        try:
            upstream = await relay.relay(req)
        except GatewayError:
            raise
        except Exception as exc:
            logger.exception("Opening completion relay failed")
            return error_response(GatewayError("Server error", detail=str(exc)))
        return RelayResponse(upstream)

    @app.post("/upload", response_model=UploadResponse)
    async def upload(file: UploadFile | None = File(None)):
        if file is None:
            raise RequestError("No file provided")

        try:
            result = await uploads.upload(file, file.filename or "", file.content_type)
        except GatewayError as exc:
            logger.warning("Upload of %s failed: %s (%s)", file.filename, exc.message, exc.detail)
            return error_response(exc, detail_key="details")
        except Exception as exc:
            logger.exception("Upload of %s failed", file.filename)
            return error_response(
                GatewayError("Server error", detail=str(exc)), detail_key="details"
            )
        finally:
            await file.close()

        return UploadResponse.from_result(result)

    return app
