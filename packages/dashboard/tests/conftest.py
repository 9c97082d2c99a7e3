import pytest

from dashsync.config import clear_runtime_overrides, refresh_settings


@pytest.fixture(autouse=True)
def fresh_settings(monkeypatch):
    for key in (
        "DASHSYNC_API_BASE_URL",
        "NEXT_PUBLIC_API_BASE_URL",
        "DASHSYNC_RELAY_URL",
        "DASHSYNC_EMPTY_POLICY",
        "DASHSYNC_TRANSIENT_TTL_MS",
        "DASHSYNC_STORAGE_PREFIX",
    ):
        monkeypatch.delenv(key, raising=False)
    clear_runtime_overrides()
    refresh_settings()
    yield
    clear_runtime_overrides()
    refresh_settings()
