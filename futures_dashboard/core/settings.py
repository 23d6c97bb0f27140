import os
from typing import List, Optional

from pydantic import BaseModel, Field

from futures_dashboard.core.constants import MAINNET_BASE_URL


def _env_bool(name: str, default: bool = False) -> bool:
    return str(os.getenv(name, str(default))).strip().lower() in ("1", "true", "yes", "on")


class Settings(BaseModel):
    """
    Runtime configuration, read from environment variables.
    """
    binance_api_key: Optional[str] = None
    binance_api_secret: Optional[str] = None
    binance_base_url: str = MAINNET_BASE_URL
    use_mock: bool = False

    database_url: Optional[str] = None
    redis_url: Optional[str] = None

    cache_duration_minutes: int = 5
    refresh_interval_minutes: int = 5
    api_timeout_seconds: float = 30.0
    trade_symbols: List[str] = Field(default_factory=list)
    income_lookback_days: int = 7
    log_level: str = "INFO"

    @property
    def cache_ttl_seconds(self) -> int:
        return self.cache_duration_minutes * 60

    @property
    def refresh_interval_seconds(self) -> int:
        return self.refresh_interval_minutes * 60

    @classmethod
    def from_env(cls) -> "Settings":
        symbols = os.getenv("TRADE_SYMBOLS", "")
        return cls(
            binance_api_key=os.getenv("BINANCE_API_KEY"),
            binance_api_secret=os.getenv("BINANCE_API_SECRET"),
            binance_base_url=os.getenv("BINANCE_BASE_URL", MAINNET_BASE_URL),
            use_mock=_env_bool("USE_MOCK"),
            database_url=os.getenv("DATABASE_URL"),
            redis_url=os.getenv("REDIS_URL"),
            cache_duration_minutes=int(os.getenv("CACHE_DURATION_MINUTES", "5")),
            refresh_interval_minutes=int(os.getenv("REFRESH_INTERVAL_MINUTES", "5")),
            api_timeout_seconds=float(os.getenv("API_TIMEOUT_SECONDS", "30")),
            trade_symbols=[s.strip().upper() for s in symbols.split(",") if s.strip()],
            income_lookback_days=int(os.getenv("INCOME_LOOKBACK_DAYS", "7")),
            log_level=os.getenv("LOG_LEVEL", "INFO").upper(),
        )
