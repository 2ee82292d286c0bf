from __future__ import annotations

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    DB_URL: str = "sqlite:///./nightbase.db"
    AUTO_MIGRATE: bool = False

    LOG_LEVEL: str = "INFO"

    CORS_ORIGINS: str = "http://localhost:3000,http://127.0.0.1:3000"

    # Fallbacks when a pricing policy leaves a duration empty or zero
    DEFAULT_SET_DURATION_MINUTES: int = 60
    DEFAULT_EXTENSION_DURATION_MINUTES: int = 30

    DEFAULT_ENGAGEMENT_TAG: str = "serving"

    def cors_list(self) -> list[str]:
        return [x.strip() for x in self.CORS_ORIGINS.split(",") if x.strip()]


settings = Settings()
