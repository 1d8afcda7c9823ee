from __future__ import annotations

from typing import Any

from fastapi.responses import JSONResponse


class GatewayError(Exception):
    """Base class for failures reported to the caller as a JSON body."""

    status_code = 500
    code = "gateway_error"

    def __init__(self, message: str, detail: str | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.detail = detail

    def to_dict(self, detail_key: str = "detail") -> dict[str, Any]:
        body: dict[str, Any] = {"error": self.message, "code": self.code}
        if self.detail is not None:
            body[detail_key] = self.detail
        return body


class ConfigurationError(GatewayError):
    code = "configuration_error"


class RequestError(GatewayError):
    status_code = 400
    code = "request_error"


class UpstreamError(GatewayError):
    code = "upstream_error"


class StorageError(GatewayError):
    code = "storage_error"


class ConflictError(StorageError):
    """An overwrite-disabled write hit an existing object."""

    code = "conflict"


class ContentReadError(GatewayError):
    code = "read_error"


def error_response(exc: GatewayError, detail_key: str = "detail") -> JSONResponse:
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict(detail_key))
