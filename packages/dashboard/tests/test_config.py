from dashsync.config import get_settings, refresh_settings, update_runtime_overrides


def test_defaults() -> None:
    settings = refresh_settings()
    assert settings.api_base_url == "http://localhost/restuarent/api"
    assert settings.storage_key_prefix == "dashboard_update_"
    assert settings.transient_ttl_ms == 100
    assert settings.poll_interval_seconds is None
    assert settings.empty_policy == "silent"
    assert settings.cors_allow_origins == ["*"]


def test_environment_values_are_parsed(monkeypatch) -> None:
    monkeypatch.setenv("NEXT_PUBLIC_API_BASE_URL", "http://pos.local/api")
    monkeypatch.setenv("DASHSYNC_TIMEOUT_SECONDS", "5")
    monkeypatch.setenv("DASHSYNC_POLL_INTERVAL_SECONDS", "0")
    monkeypatch.setenv("CORS_ALLOW_ORIGINS", "http://a.test, http://b.test,")
    monkeypatch.setenv("DASHSYNC_TRANSIENT_TTL_MS", "soon")
    settings = refresh_settings()
    assert settings.api_base_url == "http://pos.local/api"
    assert settings.request_timeout_seconds == 5.0
    assert settings.poll_interval_seconds is None
    assert settings.cors_allow_origins == ["http://a.test", "http://b.test"]
    assert settings.transient_ttl_ms == 100

    monkeypatch.setenv("DASHSYNC_API_BASE_URL", "http://override.test/api")
    assert refresh_settings().api_base_url == "http://override.test/api"


def test_runtime_overrides_survive_refresh() -> None:
    update_runtime_overrides({"terminal": 9, "relay_url": None})
    assert get_settings().terminal == 9
    assert refresh_settings().terminal == 9
    assert refresh_settings().relay_url is None
