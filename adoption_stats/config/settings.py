"""Application settings and configuration"""

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application settings loaded from environment variables"""

    # Application
    APP_NAME: str = "Adoption Stats"
    APP_VERSION: str = "1.0.0"
    DEBUG: bool = False
    USER_AGENT: str = "AdoptionStats/1.0"

    # Tracked package
    STATS_PACKAGE: str = "@highcharts/grid-lite"

    # Upstream analytics endpoints
    JSDELIVR_BASE_URL: str = "https://data.jsdelivr.com/v1/stats/packages/npm"
    NPM_RANGE_BASE_URL: str = "https://api.npmjs.org/downloads/range"
    NPM_REGISTRY_BASE_URL: str = "https://registry.npmjs.org"

    # Reconciliation policy
    STATS_MAX_DAYS_PER_REQUEST: int = 360  # npm range API span ceiling
    STATS_CDN_HITS_PER_INSTALL: float = 2.0  # jsDelivr serves two files per install
    STATS_MOVING_AVERAGE_WINDOW: int = 7
    STATS_DEFAULT_MONTHS: int = 6  # Default window, current month included

    # HTTP client resilience controls
    STATS_FETCH_CONCURRENCY: int = 4
    STATS_HTTP_TIMEOUT_SECONDS: float = 30.0
    STATS_HTTP_MAX_RETRIES: int = 3
    STATS_HTTP_BACKOFF_BASE_SECONDS: float = 1.0
    STATS_HTTP_BACKOFF_MAX_SECONDS: float = 16.0

    class Config:
        env_file = ".env"
        case_sensitive = True
        extra = "ignore"  # Ignore extra fields in .env


settings = Settings()
