"""
Application Settings
Load from environment variables
"""

from pydantic_settings import BaseSettings, SettingsConfigDict
from typing import Optional


class Settings(BaseSettings):
    """Application settings from environment"""

    # ======================
    # Application
    # ======================
    APP_ENV: str = "development"
    DEBUG: bool = True
    LOG_LEVEL: str = "INFO"
    API_HOST: str = "0.0.0.0"
    API_PORT: int = 8000

    # ======================
    # Logging
    # ======================
    LOG_FILE: Optional[str] = None
    LOG_MAX_BYTES: int = 10_485_760
    LOG_BACKUP_COUNT: int = 5

    # ======================
    # Upstream quote feeds (Eastmoney)
    # ======================
    ESTIMATE_URL: str = "https://fundgz.1234567.com.cn/js/{code}.js"
    NAV_HISTORY_URL: str = "https://api.fund.eastmoney.com/f10/lsjz"
    FUND_SEARCH_URL: str = "https://fundsuggest.eastmoney.com/FundSearch/api/FundSearchAPI.ashx"
    UPSTREAM_REFERER: str = "https://fund.eastmoney.com/"
    UPSTREAM_TIMEOUT_SECONDS: float = 10.0
    HISTORY_PAGE_SIZE: int = 20

    # Fund whose NAV postings stand in for the market calendar
    TRADING_CALENDAR_REFERENCE_CODE: str = "110020"

    # ======================
    # Timezone (provider local calendar)
    # ======================
    TIMEZONE: str = "Asia/Shanghai"

    # ======================
    # Scheduler
    # ======================
    SCHEDULER_ENABLED: bool = False
    POLL_INTERVAL_SECONDS: int = 60

    # ======================
    # Storage
    # ======================
    STORE_PATH: str = "data/fund_store.json"

    # ======================
    # Pydantic v2 config
    # ======================
    model_config = SettingsConfigDict(
        env_file=".env",
        case_sensitive=True,
        extra="forbid",
    )


settings = Settings()
