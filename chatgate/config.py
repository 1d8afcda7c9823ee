from __future__ import annotations

from dataclasses import dataclass
import os


def _get_env(name: str, default: str | None = None) -> str | None:
    value = os.getenv(name)
    return value if value is not None else default


def _get_first(*names: str) -> str | None:
    for name in names:
        value = os.getenv(name)
        if value:
            return value
    return None


def _get_float(name: str, default: float) -> float:
    value = os.getenv(name)
    return float(value) if value is not None else default


@dataclass(frozen=True)
class Settings:
    provider_base_url: str
    provider_path: str
    provider_api_key: str | None
    provider_model: str
    request_timeout: float
    storage_url: str | None
    storage_key: str | None
    storage_bucket: str
    storage_timeout: float
    log_level: str


def get_settings() -> Settings:
    storage_url = _get_first("STORAGE_URL", "SUPABASE_URL")

    return Settings(
        provider_base_url=_get_env("PROVIDER_BASE_URL", "https://api.openai.com"),
        provider_path=_get_env("PROVIDER_PATH", "/v1/chat/completions"),
        provider_api_key=_get_first("PROVIDER_API_KEY", "OPENAI_API_KEY"),
        provider_model=_get_env("PROVIDER_MODEL", "gpt-4o-mini"),
        request_timeout=_get_float("REQUEST_TIMEOUT", 60.0),
        storage_url=storage_url.rstrip("/") if storage_url else None,
        storage_key=_get_first("STORAGE_KEY", "SUPABASE_KEY"),
        storage_bucket=_get_env("STORAGE_BUCKET", "chat-files"),
        storage_timeout=_get_float("STORAGE_TIMEOUT", 30.0),
        log_level=_get_env("LOG_LEVEL", "INFO").upper(),
    )
