import pytest

ENV_VARS = [
    "PROVIDER_BASE_URL",
    "PROVIDER_PATH",
    "PROVIDER_API_KEY",
    "OPENAI_API_KEY",
    "PROVIDER_MODEL",
    "REQUEST_TIMEOUT",
    "STORAGE_URL",
    "SUPABASE_URL",
    "STORAGE_KEY",
    "SUPABASE_KEY",
    "STORAGE_BUCKET",
    "STORAGE_TIMEOUT",
    "LOG_LEVEL",
]


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for name in ENV_VARS:
        monkeypatch.delenv(name, raising=False)
