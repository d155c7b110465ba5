from pydantic_settings import BaseSettings
from typing import Optional, List

class Settings(BaseSettings):
    PROJECT_NAME: str = "Trading League Performance API"
    VERSION: str = "1.0.0"
    API_V1_STR: str = "/api/v1"
    SECRET_KEY: str = "change-me"

    # CORS
    ALLOWED_ORIGINS: List[str] = [
        "http://localhost:3000",
        "http://127.0.0.1:3000",
    ]

    # Database Configuration
    DATABASE_URL: str = "sqlite:///./trading_league.db"
    TEST_DATABASE_URL: Optional[str] = None

    # Market data provider
    POLYGON_API_KEY: Optional[str] = None
    POLYGON_BASE_URL: str = "https://api.polygon.io"
    PROVIDER_TIMEOUT_SECONDS: float = 10.0
    PROVIDER_CONCURRENCY: int = 8
    MAX_BACKFILL_DAYS: int = 5 * 366
    QUOTE_CACHE_TTL_SECONDS: int = 15 * 60

    # Performance / ranking
    BENCHMARK_TICKER: str = "I:SPX"
    BENCHMARK_NAME: str = "S&P 500"
    NOISE_CLAMP_THRESHOLD: float = 0.5
    RANKING_FRESHNESS_HOURS: int = 24
    RANKING_TOP_N: int = 20
    PERFORMANCE_JOB_HOUR: int = 18
    CRON_API_KEY: Optional[str] = None

    # Cache
    CACHE_TTL: int = 300
    REDIS_URL: Optional[str] = None

    class Config:
        env_file = ".env"

settings = Settings()
