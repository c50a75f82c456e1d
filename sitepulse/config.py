"""
Configuration management for SitePulse
"""
from pydantic_settings import BaseSettings
from functools import lru_cache


class Settings(BaseSettings):
    # Application
    APP_NAME: str = "SitePulse"
    APP_VERSION: str = "1.0.0"
    DEBUG: bool = False

    # Database
    DATABASE_URL: str = "sqlite:///./sitepulse.db"

    # Budget defaults
    DEFAULT_TOTAL_BUDGET: float = 250000.0  # ₱250k
    DEFAULT_CONTINGENCY_PERCENTAGE: float = 10.0

    # Budget synchronisation timing
    RECONCILE_DEBOUNCE_MS: int = 150
    PERSIST_COOLDOWN_MS: int = 250
    FETCH_TIMEOUT_SECONDS: float = 10.0

    # Delay prediction cloud function
    DELAY_PREDICTION_URL: str = ""     # e.g. "https://region-project.cloudfunctions.net"
    DELAY_PREDICTION_TIMEOUT_SECONDS: float = 30.0

    # CORS
    CORS_ORIGINS: list[str] = ["http://localhost:8081", "http://localhost:19006"]

    class Config:
        env_file = ".env"
        case_sensitive = True


@lru_cache()
def get_settings() -> Settings:
    return Settings()
