"""
Configuration and settings for the Imob API.
"""

from __future__ import annotations

from functools import lru_cache
from typing import Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Environment-backed settings for the FastAPI service."""

    model_config = SettingsConfigDict(
        env_file=".env", env_file_encoding="utf-8", extra="ignore"
    )

    api_prefix: str = Field(default="/api/v1")
    environment: str = Field(default="development", env="ENVIRONMENT")
    log_level: str = Field(default="info", env="LOG_LEVEL")
    host: str = Field(default="0.0.0.0", env="HOST")
    port: int = Field(default=8080, env="PORT")

    # Firebase / Firestore
    firebase_project_id: Optional[str] = Field(
        default=None, env="FIREBASE_PROJECT_ID"
    )
    firestore_database_id: Optional[str] = Field(
        default=None, env="FIRESTORE_DATABASE_ID"
    )
    google_application_credentials: Optional[str] = Field(
        default=None, env="GOOGLE_APPLICATION_CREDENTIALS"
    )
    firebase_web_api_key: Optional[str] = Field(
        default=None, env="FIREBASE_WEB_API_KEY"
    )

    # Development toggles
    use_in_memory_backends: bool = Field(
        default=False, env="USE_IN_MEMORY_BACKENDS"
    )

    # Import batch ledger (Postgres expected)
    database_url: Optional[str] = Field(default=None, env="DATABASE_URL")

    # Queue (Redis)
    redis_url: Optional[str] = Field(default=None, env="REDIS_URL")
    redis_queue_key: str = Field(
        default="imob:import_batches", env="REDIS_QUEUE_KEY"
    )

    # S3-compatible storage for uploaded import files
    storage_bucket: Optional[str] = Field(default=None, env="STORAGE_BUCKET")
    storage_endpoint: Optional[str] = Field(default=None, env="STORAGE_ENDPOINT")
    storage_region: Optional[str] = Field(default=None, env="STORAGE_REGION")
    aws_access_key_id: Optional[str] = Field(
        default=None, env="AWS_ACCESS_KEY_ID"
    )
    aws_secret_access_key: Optional[str] = Field(
        default=None, env="AWS_SECRET_ACCESS_KEY"
    )

    # HTTP
    allowed_origins: str = Field(
        default="http://localhost:3000,http://localhost:3001,http://localhost:3002",
        env="ALLOWED_ORIGINS",
    )
    frontend_url: str = Field(default="http://localhost:3002", env="FRONTEND_URL")
    public_site_url: str = Field(
        default="http://localhost:3000", env="PUBLIC_SITE_URL"
    )

    # Rate limiting (token bucket per client IP)
    rate_limit_enabled: bool = Field(default=True, env="RATE_LIMIT_ENABLED")
    rate_limit_per_second: float = Field(default=10.0, env="RATE_LIMIT_PER_SECOND")
    rate_limit_burst: int = Field(default=20, env="RATE_LIMIT_BURST")
    strict_rate_limit_per_second: float = Field(
        default=2.0, env="STRICT_RATE_LIMIT_PER_SECOND"
    )
    strict_rate_limit_burst: int = Field(default=5, env="STRICT_RATE_LIMIT_BURST")

    # Email (SMTP)
    smtp_host: Optional[str] = Field(default=None, env="SMTP_HOST")
    smtp_port: int = Field(default=587, env="SMTP_PORT")
    smtp_user: Optional[str] = Field(default=None, env="SMTP_USER")
    smtp_password: Optional[str] = Field(default=None, env="SMTP_PASSWORD")
    email_from: Optional[str] = Field(default=None, env="EMAIL_FROM")
    email_from_name: str = Field(default="Ecosistema Imob", env="EMAIL_FROM_NAME")

    # Invitations and owner confirmations
    invitation_ttl_days: int = Field(default=7, env="INVITATION_TTL_DAYS")
    owner_confirmation_ttl_days: int = Field(
        default=7, env="OWNER_CONFIRMATION_TTL_DAYS"
    )

    # Import worker
    import_poll_interval_seconds: float = Field(
        default=2.0, env="IMPORT_POLL_INTERVAL_SECONDS"
    )
    import_lock_timeout_seconds: float = Field(
        default=900, env="IMPORT_LOCK_TIMEOUT_SECONDS"
    )

    @property
    def is_development(self) -> bool:
        return self.environment == "development"

    @property
    def is_production(self) -> bool:
        return self.environment == "production"

    @property
    def allowed_origins_list(self) -> list[str]:
        return [o.strip() for o in self.allowed_origins.split(",") if o.strip()]

    @property
    def email_enabled(self) -> bool:
        return bool(self.smtp_host and self.smtp_user and self.smtp_password)


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Return cached settings instance."""
    return Settings()
