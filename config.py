import os
from pydantic_settings import BaseSettings, SettingsConfigDict
from typing import List
from functools import lru_cache


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    app_name: str = "Account Transfer API"
    app_version: str = "1.0.0"
    debug: bool = False
    host: str = "0.0.0.0"
    port: int = 8000

    log_level: str = "INFO"
    log_format: str = "json"  # json or text

    # Transfers per client address per minute
    rate_limit_per_minute: int = 30

    allowed_origins: List[str] = ["*"]
    allowed_methods: List[str] = ["GET", "POST", "OPTIONS"]
    allowed_headers: List[str] = ["*"]

    # Transfer notifications
    currency_symbol: str = "$"
    notification_workers: int = 4


class DevelopmentSettings(Settings):
    debug: bool = True
    log_level: str = "DEBUG"
    log_format: str = "text"
    rate_limit_per_minute: int = 100


class ProductionSettings(Settings):
    allowed_origins: List[str] = []  # Must be set explicitly


class TestingSettings(Settings):
    log_level: str = "WARNING"
    rate_limit_per_minute: int = 1000
    notification_workers: int = 2


ENVIRONMENTS = {
    "development": DevelopmentSettings,
    "production": ProductionSettings,
    "testing": TestingSettings,
}


def get_settings_for_environment(env: str = "development") -> Settings:
    """Build settings for a named environment; unknown names get the base defaults."""
    return ENVIRONMENTS.get(env.lower(), Settings)()


@lru_cache()
def get_settings() -> Settings:
    """Settings for the environment named by APP_ENV, built once per process."""
    return get_settings_for_environment(os.getenv("APP_ENV", "development"))
