import os
import sys
from functools import lru_cache

from pydantic import SecretStr
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    app_name: str = "Listing Sync API"
    app_env: str = "local"
    api_v1_prefix: str = "/api/v1"
    log_level: str = "INFO"

    postgres_dsn: str = "sqlite:///./listing_sync.db"
    celery_broker_url: str = "redis://localhost:6379/0"
    celery_result_backend: str = "redis://localhost:6379/1"
    celery_task_always_eager: bool = False
    celery_task_eager_propagates: bool = False

    google_oauth_client_id: str = ""
    google_oauth_client_secret: str = ""
    google_oauth_token_endpoint: str = "https://oauth2.googleapis.com/token"
    google_oauth_http_timeout_seconds: float = 10.0
    google_oauth_access_token_skew_seconds: int = 300

    google_business_information_base_url: str = "https://mybusinessbusinessinformation.googleapis.com/v1"
    google_business_v4_base_url: str = "https://mybusiness.googleapis.com/v4"
    google_business_performance_base_url: str = "https://businessprofileperformance.googleapis.com/v1"
    google_business_verifications_base_url: str = "https://mybusinessverifications.googleapis.com/v1"
    provider_http_timeout_seconds: float = 30.0
    provider_rate_limit_max_requests: int = 60
    provider_rate_limit_window_seconds: float = 60.0
    provider_min_interval_seconds: float = 0.0

    bulk_publish_delay_seconds: float = 1.0
    performance_window_days: int = 30
    keyword_window_months: int = 3

    anthropic_api_key: SecretStr = SecretStr("")
    narrative_model: str = "claude-sonnet-4-20250514"
    narrative_max_tokens: int = 2048
    narrative_temperature: float = 0.5

    metrics_enabled: bool = True


@lru_cache
def get_settings() -> Settings:
    app_env = os.getenv("APP_ENV", "").lower()
    is_pytest_runtime = "pytest" in sys.modules
    if app_env == "test" or (not app_env and is_pytest_runtime):
        return Settings(
            app_env="test",
            celery_task_always_eager=True,
            celery_task_eager_propagates=True,
            celery_broker_url="memory://",
            celery_result_backend="cache+memory://",
            google_oauth_client_id="test-client-id",
            google_oauth_client_secret="test-client-secret",
            bulk_publish_delay_seconds=0.0,
            provider_rate_limit_max_requests=10_000,
        )
    return Settings()
