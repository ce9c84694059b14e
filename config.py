import os
from functools import lru_cache
from pathlib import Path


class Settings:
    def __init__(
        self,
        database_url: str,
        timezone: str,
        default_granularity: str,
        recent_limit: int,
        subscription_limit: int,
        insight_threshold: float,
        safety_refresh_minutes: int,
    ) -> None:
        self.database_url = database_url
        self.timezone = timezone
        self.default_granularity = default_granularity
        self.recent_limit = recent_limit
        self.subscription_limit = subscription_limit
        self.insight_threshold = insight_threshold
        self.safety_refresh_minutes = safety_refresh_minutes


def _ensure_data_dir() -> Path:
    root = Path(os.getenv("DASHBOARD_DATA_DIR", "./data")).resolve()
    root.mkdir(parents=True, exist_ok=True)
    return root


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    data_dir = _ensure_data_dir()
    default_db = data_dir / "dashboard.db"
    database_url = os.getenv("DASHBOARD_DATABASE_URL", f"sqlite:///{default_db}")
    timezone = os.getenv("DASHBOARD_TIMEZONE", "Europe/Berlin")
    default_granularity = os.getenv("DASHBOARD_DEFAULT_GRANULARITY", "monthly")
    recent_limit = int(os.getenv("DASHBOARD_RECENT_LIMIT", "5"))
    subscription_limit = int(os.getenv("DASHBOARD_SUBSCRIPTION_LIMIT", "3"))
    insight_threshold = float(os.getenv("DASHBOARD_INSIGHT_THRESHOLD", "75"))
    safety_refresh_minutes = int(os.getenv("DASHBOARD_SAFETY_REFRESH_MINUTES", "60"))
    return Settings(
        database_url=database_url,
        timezone=timezone,
        default_granularity=default_granularity,
        recent_limit=recent_limit,
        subscription_limit=subscription_limit,
        insight_threshold=insight_threshold,
        safety_refresh_minutes=safety_refresh_minutes,
    )
