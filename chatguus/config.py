"""Configuration settings for the ChatGuusPT service"""

from typing import List
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings"""

    # Server
    service_name: str = "chatguus"
    version: str = "1.0.0"
    environment: str = "production"  # production, development
    debug: bool = False
    port: int = 8080

    # Logging
    log_level: str = "INFO"
    log_format: str = "json"  # json or console

    # CORS
    allowed_origins: List[str] = ["*"]

    # Document store
    redis_url: str = "redis://localhost:6379"
    redis_prefix: str = "chatguus"
    redis_max_connections: int = 20

    # Language model
    openai_api_key: str = ""
    openai_model: str = "gpt-3.5-turbo"
    openai_temperature: float = 0.7
    openai_max_tokens: int = 300
    openai_timeout_seconds: float = 20.0
    history_limit: int = 10

    # SMTP
    smtp_host: str = ""
    smtp_port: int = 587
    smtp_user: str = ""
    smtp_pass: str = ""
    smtp_use_tls: bool = True
    email_from: str = '"Guus van de Koepel" <noreply@cupolaxs.nl>'

    # Department fallbacks when a tenant routing table has no entry
    email_general: str = "welcome@cupolaxs.nl"
    email_it: str = "support@axs-ict.com"
    email_cleaning: str = "ralphcassa@gmail.com"
    email_events: str = "irene@cupolaxs.nl"

    # Slack
    slack_webhook_url: str = ""
    webhook_timeout_seconds: float = 10.0

    # Google Sheets
    google_sheets_id: str = ""
    google_service_account_file: str = ""

    # Tenancy
    default_tenant_id: str = "koepel"

    # Caches
    dashboard_cache_ttl_seconds: int = 300  # 5 minutes
    tenant_cache_ttl_seconds: int = 300

    # Widget
    widget_cache_max_age: int = 300
    public_base_url: str = ""

    # Rate limiting (chat endpoint)
    rate_limit_requests: int = 60
    rate_limit_window: int = 60

    # Usage events
    analytics_salt: str = "chatguus_salt"

    model_config = SettingsConfigDict(
        env_file=".env",
        case_sensitive=False,
        extra="ignore",
    )

    @property
    def is_development(self) -> bool:
        return self.environment.lower() == "development"

    @property
    def openai_configured(self) -> bool:
        return bool(self.openai_api_key)

    @property
    def smtp_configured(self) -> bool:
        return bool(self.smtp_host)

    @property
    def slack_configured(self) -> bool:
        return bool(self.slack_webhook_url)

    @property
    def sheets_configured(self) -> bool:
        return bool(self.google_sheets_id and self.google_service_account_file)


settings = Settings()
