from functools import lru_cache

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    app_env: str = "local"
    api_v1_prefix: str = "/api/v1"

    # Database
    database_url: str = "sqlite:///./lab_inventory.db"
    database_echo: bool = False
    database_auto_create: bool = False  # local convenience; alembic otherwise

    # Logging
    log_level: str = "INFO"

    # Inventory
    expiring_soon_default_days: int = 30
    consume_max_attempts: int = 3

    # Pydantic v2 style config
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )


@lru_cache()
def get_settings() -> Settings:
    """
    Cached settings instance so the .env is parsed once.
    """
    return Settings()
