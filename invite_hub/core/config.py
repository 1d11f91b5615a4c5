from functools import lru_cache

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    app_env: str = Field(default="dev", alias="APP_ENV")
    app_host: str = Field(default="0.0.0.0", alias="APP_HOST")
    app_port: int = Field(default=8000, alias="APP_PORT")
    log_level: str = Field(default="INFO", alias="LOG_LEVEL")

    internal_api_token: str = Field(
        default="dev_internal_token_change_me",
        alias="INTERNAL_API_TOKEN",
    )
    internal_api_allowlist: str = Field(
        default="127.0.0.1/32,::1/128",
        alias="INTERNAL_API_ALLOWLIST",
    )
    internal_api_trusted_proxies: str = Field(default="", alias="INTERNAL_API_TRUSTED_PROXIES")

    database_url: str = Field(alias="DATABASE_URL")
    redis_url: str = Field(alias="REDIS_URL")

    celery_broker_url: str = Field(alias="CELERY_BROKER_URL")
    celery_result_backend: str = Field(alias="CELERY_RESULT_BACKEND")

    # Keyed by product slug, e.g. {"notes": "sk_live_..."}
    stripe_secret_keys: dict[str, str] = Field(default_factory=dict, alias="STRIPE_SECRET_KEYS")
    stripe_webhook_secrets: dict[str, str] = Field(
        default_factory=dict,
        alias="STRIPE_WEBHOOK_SECRETS",
    )
    stripe_credit_currency: str = Field(default="usd", alias="STRIPE_CREDIT_CURRENCY")
    stripe_timeout_seconds: float = Field(default=10.0, gt=0, alias="STRIPE_TIMEOUT_SECONDS")

    referral_sweep_batch_size: int = Field(default=200, ge=1, alias="REFERRAL_SWEEP_BATCH_SIZE")

    ops_alert_webhook_url: str = Field(default="", alias="OPS_ALERT_WEBHOOK_URL")
    ops_alert_slack_webhook_url: str = Field(default="", alias="OPS_ALERT_SLACK_WEBHOOK_URL")


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return Settings()
