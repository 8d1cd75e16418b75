from functools import lru_cache

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from ``DDCT_*`` environment variables.

    Attributes:
        LOG_LEVEL: Logging level (DEBUG, INFO, WARNING, ERROR)
        DEFAULT_REPLICA_COUNT: Replicas per sample offered when a file is loaded
        MAX_REPLICA_COUNT: Largest accepted replica count
        DEFAULT_HOUSEKEEPER: Gene preselected as housekeeper, if present
        DISPLAY_DECIMALS: Decimal places used in rendered and exported tables
    """

    model_config = SettingsConfigDict(
        env_prefix="DDCT_",
        env_file=".env",
        case_sensitive=True,
        extra="ignore",
    )

    LOG_LEVEL: str = "INFO"
    DEFAULT_REPLICA_COUNT: int = 3
    MAX_REPLICA_COUNT: int = 10
    DEFAULT_HOUSEKEEPER: str = ""
    DISPLAY_DECIMALS: int = 4


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance (lazy singleton)."""
    return Settings()
