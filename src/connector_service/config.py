"""Application configuration management."""

from functools import lru_cache
from typing import Literal

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # -------------------------------------------------------------------------
    # Application Settings
    # -------------------------------------------------------------------------
    app_name: str = "printful-webflow-connector"
    app_env: Literal["development", "staging", "production", "test"] = "development"
    debug: bool = False
    log_level: str = "INFO"

    # -------------------------------------------------------------------------
    # API Settings
    # -------------------------------------------------------------------------
    api_host: str = "0.0.0.0"
    api_port: int = 8000
    api_workers: int = 4
    cors_origins: list[str] = Field(default_factory=lambda: ["http://localhost:3000"])
    public_base_url: str = "http://localhost:8000"

    @field_validator("cors_origins", mode="before")
    @classmethod
    def parse_cors_origins(cls, v: str | list[str]) -> list[str]:
        if isinstance(v, str):
            return [origin.strip() for origin in v.split(",")]
        return v

    @field_validator("public_base_url")
    @classmethod
    def strip_trailing_slash(cls, v: str) -> str:
        return v.rstrip("/")

    # -------------------------------------------------------------------------
    # Printful (print-on-demand fulfillment)
    # -------------------------------------------------------------------------
    printful_client_id: str = ""
    printful_client_secret: str = ""
    printful_api_base_url: str = "https://api.printful.com"
    printful_oauth_base_url: str = "https://www.printful.com/oauth"
    printful_scopes: str = "orders sync_products file_library webhooks"

    # -------------------------------------------------------------------------
    # Webflow (site / commerce builder)
    # -------------------------------------------------------------------------
    webflow_client_id: str = ""
    webflow_client_secret: str = ""
    webflow_redirect_uri: str = ""
    webflow_api_base_url: str = "https://api.webflow.com/v2"
    webflow_oauth_base_url: str = "https://webflow.com/oauth"
    webflow_token_url: str = "https://api.webflow.com/oauth/access_token"
    webflow_scopes: str = (
        "sites:read ecommerce:read ecommerce:write authorized_user:read cms:read cms:write"
    )
    webflow_webhook_secret: str = ""

    http_timeout_seconds: float = 30.0

    # -------------------------------------------------------------------------
    # Redis
    # -------------------------------------------------------------------------
    redis_host: str = "localhost"
    redis_port: int = 6379
    redis_password: str = ""
    redis_db: int = 0
    redis_ssl: bool = False
    redis_url_override: str = ""

    @property
    def redis_url(self) -> str:
        """Construct Redis connection URL."""
        if self.redis_url_override:
            return self.redis_url_override
        scheme = "rediss" if self.redis_ssl else "redis"
        if self.redis_password:
            return f"{scheme}://:{self.redis_password}@{self.redis_host}:{self.redis_port}/{self.redis_db}"
        return f"{scheme}://{self.redis_host}:{self.redis_port}/{self.redis_db}"

    # -------------------------------------------------------------------------
    # Celery
    # -------------------------------------------------------------------------
    celery_broker_url: str = ""
    celery_result_backend: str = ""

    @property
    def celery_broker(self) -> str:
        """Get Celery broker URL, defaulting to Redis URL."""
        return self.celery_broker_url or self.redis_url

    @property
    def celery_backend(self) -> str:
        """Get Celery result backend URL, defaulting to Redis URL."""
        return self.celery_result_backend or self.redis_url

    # -------------------------------------------------------------------------
    # Security / Sessions
    # -------------------------------------------------------------------------
    secret_key: str = "change-me-in-production"
    session_cookie_name: str = "connector_session"
    session_max_age_seconds: int = 60 * 60 * 24 * 7
    oauth_state_max_age_seconds: int = 300
    cookie_secure: bool = False

    # -------------------------------------------------------------------------
    # Token Storage
    # -------------------------------------------------------------------------
    token_ttl_seconds: int = 60 * 60 * 24 * 7
    provider_token_cache_seconds: int = 60

    # -------------------------------------------------------------------------
    # Product Sync Settings
    # -------------------------------------------------------------------------
    sync_currency: str = "USD"
    sync_in_stock_quantity: int = 999
    sync_publish_status: Literal["staging", "live"] = "live"
    sync_products_collection_name: str = "Products"
    sync_schema_propagation_seconds: float = 3.0
    sync_default_site_id: str = ""
    sync_products_interval_minutes: int = 60

    # -------------------------------------------------------------------------
    # Order Settings
    # -------------------------------------------------------------------------
    auto_fulfill_orders: bool = False
    fulfill_orders_interval_minutes: int = 30
    order_shipping_method: str = "STANDARD"
    orders_page_limit: int = 50
    bulk_orders_page_limit: int = 100

    def oauth_redirect_uri(self, provider: str) -> str:
        """Callback URL registered with the provider's OAuth app."""
        if provider == "webflow" and self.webflow_redirect_uri:
            return self.webflow_redirect_uri
        return f"{self.public_base_url}/api/v1/auth/callback/{provider}"


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
