"""
Shared configuration management for the Tenant Billing Rules service.
"""

from typing import Dict, Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


DEFAULT_PLAN_PRICES: Dict[str, float] = {
    "free": 0.0,
    "basic": 29.0,
    "professional": 99.0,
    "enterprise": 299.0,
}


class BaseConfig(BaseSettings):
    """Base configuration class with common settings."""

    model_config = SettingsConfigDict(
        env_prefix="BILLING_",
        env_file=".env",
        case_sensitive=False,
        extra="allow"
    )

    # Environment
    env: str = Field(default="local")
    log_level: str = Field(default="info")

    # Rule storage
    rule_store_backend: str = Field(default="memory", description="memory or postgres")
    postgres_dsn: str = Field(default="postgres://localhost:5432/billing")

    # External collaborators
    tenant_service_url: str = Field(default="http://localhost:8020")
    usage_service_url: str = Field(default="http://localhost:8021")
    billing_ledger_url: str = Field(default="http://localhost:8022")
    notification_webhook_url: Optional[str] = Field(default=None)
    http_timeout_seconds: float = Field(default=10.0)

    # Billing
    currency: str = Field(default="USD")
    plan_prices: Dict[str, float] = Field(default_factory=lambda: dict(DEFAULT_PLAN_PRICES))
    execution_history_limit: int = Field(default=50)


class ServiceConfig(BaseConfig):
    """Service-specific configuration."""

    service_name: str
    port: int
    host: str = "0.0.0.0"

    def __init__(self, service_name: str, port: int, **kwargs):
        super().__init__(service_name=service_name, port=port, **kwargs)


def get_config(service_name: str, port: int, **overrides) -> ServiceConfig:
    """Get configuration for a specific service."""
    return ServiceConfig(service_name=service_name, port=port, **overrides)
