from typing import Optional, List
from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from common.core.constants import Environment


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8")

    # Environment Profile
    environment: Environment = Environment.LOCAL

    # API Settings
    app_name: str = "subscription-engine"
    api_version: str = "1.0.0"
    debug: bool = False

    # Database Components
    db_user: str = "postgres"
    db_password: str = "postgres"
    db_host: str = "localhost"
    db_port: int = 5432
    db_name: str = "subscriptions"
    db_use_nullpool: bool = False
    db_pool_size: int = 10
    db_pool_overflow: int = 5

    @property
    def database_url(self) -> str:
        """Construct database URL from components."""
        return f"postgresql://{self.db_user}:{self.db_password}@{self.db_host}:{self.db_port}/{self.db_name}"

    # Rate limiting (memory:// for a single pod, redis://... when scaled out)
    rate_limit_storage_uri: str = "memory://"
    rate_limit_defaults: List[str] = ["10/second", "300/minute"]

    # OpenTelemetry
    otel_service_name: str = "subscription-engine"
    otel_service_version: str = "1.0.0"

    # Axiom (trace export is skipped when no token is configured)
    axiom_token: Optional[str] = None
    axiom_dataset: Optional[str] = None

    # Frontend redirect base for hosted checkout
    frontend_url: str = "http://localhost:3000"

    # Billing - Stripe (payments)
    stripe_secret_key: str
    stripe_webhook_secret: str
    # Stripe price IDs for paid plans
    stripe_price_id_basic: str
    stripe_price_id_premium: str
    # Max age of a signed webhook timestamp
    stripe_webhook_tolerance_seconds: int = 300

    # Webhook reconciliation
    webhook_max_conflict_retries: int = 3

    @field_validator(
        "stripe_secret_key",
        "stripe_webhook_secret",
        "stripe_price_id_basic",
        "stripe_price_id_premium",
    )
    @classmethod
    def require_non_empty(cls, v: str) -> str:
        if not v or not v.strip():
            raise ValueError("must be set to a non-empty value")
        return v

    @property
    def cors_allowed_origins(self) -> List[str]:
        """Auto-select CORS origins based on environment."""
        if self.environment == Environment.LOCAL:
            return [
                "http://localhost:3000",
                "http://localhost:3001",
            ]
        return [self.frontend_url]


settings = Settings()
