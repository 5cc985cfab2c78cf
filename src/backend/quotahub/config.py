"""AppSettings -- QuotaHub application configuration.

All environment variables are read via pydantic-settings.
DB_URL and JWT_SECRET are required and will cause a startup failure if missing.
"""

from pydantic_settings import BaseSettings, SettingsConfigDict


class AppSettings(BaseSettings):
    """QuotaHub application settings, loaded from environment variables."""

    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    # Database - Required, application fails to start if missing
    DB_URL: str
    DB_POOL_SIZE: int = 5
    DB_MAX_OVERFLOW: int = 10
    DB_ECHO: bool = False

    # Authentication - Required, application fails to start if missing
    JWT_SECRET: str

    # Usage counter store
    REDIS_URL: str = "redis://localhost:6379/0"
    USAGE_COUNTER_TTL_DAYS: int = 32

    # Plan limit tables. Empty = built-in catalog from quotahub.plans
    PLAN_LIMITS_FILE: str = ""

    # Monthly credit budget reset (UTC)
    CREDIT_RESET_ENABLED: bool = True
    CREDIT_RESET_DAY: int = 1
    CREDIT_RESET_HOUR: int = 0
    CREDIT_RESET_MINUTE: int = 5

    LOG_LEVEL: str = "INFO"


settings = AppSettings()
