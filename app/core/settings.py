from enum import Enum

from pydantic_settings import BaseSettings, SettingsConfigDict


class Env(str, Enum):
    DEV = "dev"
    HML = "hml"
    PROD = "prod"


class Settings(BaseSettings):
    APP_ENV: Env = Env.DEV
    DEBUG: bool = False

    DATABASE_URL: str = "sqlite:///./kalos_availability.db"

    # Tokens are issued by the external auth provider; we only verify them.
    JWT_SECRET: str = "change-me"
    JWT_ALG: str = "HS256"
    ACCESS_TOKEN_EXPIRE_MINUTES: int = 15

    ALLOWED_HOSTS: str = "localhost,127.0.0.1"

    # Calendar dates ("today", date ranges) are interpreted in this timezone.
    LOCAL_TZ: str = "America/La_Paz"

    # Slot holds
    LOCK_TTL_SECONDS: int = 300
    LOCK_MAX_ATTEMPTS: int = 3

    # How far ahead a base-schedule change is propagated
    SCHEDULE_HORIZON_DAYS: int = 365

    REAPER_INTERVAL_SECONDS: int = 60
    REAPER_BATCH_SIZE: int = 500

    LOG_JSON: bool = True
    LOG_LEVEL: str = "INFO"

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )


# global instance
settings = Settings()
