"""Environment-driven settings for the payment relay.

Loaded once at process start (see `.env.example`) and handed to the app
factory; the value is frozen so request handling can only read it.
"""

from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class RelaySettings(BaseSettings):
    """Typed view of runtime configuration from environment variables."""

    service_name: str = "payment-relay"
    service_title: str = "SafeCircle Payment API"
    service_version: str = "1.0.0"
    log_level: str = "INFO"
    host: str = "0.0.0.0"
    port: int = 3000
    environment: str = "production"
    moneyunify_auth_id: str | None = None
    moneyunify_api_url: str = "https://api.moneyunify.one"
    provider_timeout_seconds: float = 15.0
    cors_allow_origins: list[str] = ["*"]
    otel_exporter_otlp_endpoint: str | None = None
    model_config = SettingsConfigDict(env_file=".env", extra="ignore", frozen=True)

    @field_validator("moneyunify_auth_id", "otel_exporter_otlp_endpoint", mode="before")
    @classmethod
    def _blank_as_unset(cls, value):
        if isinstance(value, str) and not value.strip():
            return None
        return value

    @field_validator("moneyunify_api_url")
    @classmethod
    def _strip_trailing_slash(cls, value: str) -> str:
        return value.rstrip("/")

    @property
    def provider_configured(self) -> bool:
        return self.moneyunify_auth_id is not None

    @property
    def is_production(self) -> bool:
        return self.environment.strip().lower() == "production"


settings = RelaySettings()
