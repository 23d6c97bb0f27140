from futures_dashboard.core.constants import MAINNET_BASE_URL
from futures_dashboard.core.settings import Settings


def test_defaults(monkeypatch):
    for name in ("BINANCE_API_KEY", "USE_MOCK", "TRADE_SYMBOLS", "CACHE_DURATION_MINUTES",
                 "REFRESH_INTERVAL_MINUTES", "BINANCE_BASE_URL", "LOG_LEVEL"):
        monkeypatch.delenv(name, raising=False)

    settings = Settings.from_env()

    assert settings.binance_api_key is None
    assert settings.binance_base_url == MAINNET_BASE_URL
    assert settings.use_mock is False
    assert settings.trade_symbols == []
    assert settings.cache_ttl_seconds == 300
    assert settings.refresh_interval_seconds == 300
    assert settings.log_level == "INFO"


def test_reads_environment(monkeypatch):
    monkeypatch.setenv("BINANCE_API_KEY", "k")
    monkeypatch.setenv("USE_MOCK", "yes")
    monkeypatch.setenv("TRADE_SYMBOLS", "btcusdt, ETHUSDT,,")
    monkeypatch.setenv("CACHE_DURATION_MINUTES", "2")
    monkeypatch.setenv("API_TIMEOUT_SECONDS", "12.5")
    monkeypatch.setenv("LOG_LEVEL", "debug")

    settings = Settings.from_env()

    assert settings.binance_api_key == "k"
    assert settings.use_mock is True
    assert settings.trade_symbols == ["BTCUSDT", "ETHUSDT"]
    assert settings.cache_ttl_seconds == 120
    assert settings.api_timeout_seconds == 12.5
    assert settings.log_level == "DEBUG"
