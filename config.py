import os
from functools import lru_cache
from pathlib import Path


class Settings:
    def __init__(
        self,
        database_url: str,
        timezone: str,
        delivery_share: float,
        breakdown_limit: int,
        cache_ttl_secs: float,
        log_level: str,
    ) -> None:
        self.database_url = database_url
        self.timezone = timezone
        self.delivery_share = delivery_share
        self.breakdown_limit = breakdown_limit
        self.cache_ttl_secs = cache_ttl_secs
        self.log_level = log_level


def _ensure_data_dir() -> Path:
    root = Path(os.getenv("FINANCE_DATA_DIR", "./data")).resolve()
    root.mkdir(parents=True, exist_ok=True)
    return root


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    data_dir = _ensure_data_dir()
    default_db = data_dir / "finance.db"
    database_url = os.getenv("FINANCE_DATABASE_URL", f"sqlite:///{default_db}")
    timezone = os.getenv("FINANCE_TIMEZONE", "Europe/Moscow")
    # Share of the aggregate view's service costs attributed to delivery.
    delivery_share = float(os.getenv("FINANCE_DELIVERY_SHARE", "0.3"))
    if not 0 <= delivery_share <= 1:
        raise ValueError("FINANCE_DELIVERY_SHARE must be between 0 and 1")
    breakdown_limit = int(os.getenv("FINANCE_BREAKDOWN_LIMIT", "100"))
    cache_ttl_secs = float(os.getenv("FINANCE_CACHE_TTL_SECS", "45"))
    log_level = os.getenv("FINANCE_LOG_LEVEL", "INFO").upper()
    return Settings(
        database_url=database_url,
        timezone=timezone,
        delivery_share=delivery_share,
        breakdown_limit=breakdown_limit,
        cache_ttl_secs=cache_ttl_secs,
        log_level=log_level,
    )
