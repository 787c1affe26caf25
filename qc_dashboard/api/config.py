"""
API Configuration
Settings and configuration for the quality control FastAPI application.
"""

import json
from typing import List, Optional, Any
from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import Field, field_validator


class APISettings(BaseSettings):
    """
    API configuration settings.

    Loaded from environment variables (or a .env file).
    """

    # API Info
    app_name: str = "Quality Control Dashboard API"
    version: str = "0.1.0"
    description: str = "Inspections, defects, alerts and quality analytics"

    # Server settings
    host: str = Field(default="0.0.0.0", alias="API_HOST")
    port: int = Field(default=5000, alias="API_PORT")
    reload: bool = Field(default=False, alias="API_RELOAD")
    environment: str = Field(default="development", alias="ENVIRONMENT")

    # CORS settings
    client_url: str = Field(default="http://localhost:3000", alias="CLIENT_URL")
    cors_origins: List[str] = Field(
        default=["http://localhost:3000"],
        alias="API_CORS_ORIGINS"
    )
    cors_allow_credentials: bool = True
    cors_allow_methods: List[str] = ["*"]
    cors_allow_headers: List[str] = ["*"]

    # Database settings
    database_url: str = Field(
        default="sqlite:///./qc_dashboard.db",
        alias="DATABASE_URL"
    )
    db_pool_size: int = Field(default=5, alias="DB_POOL_SIZE")
    db_max_overflow: int = Field(default=10, alias="DB_MAX_OVERFLOW")

    # Authentication
    jwt_secret: str = Field(default="dev-secret-change-me", alias="JWT_SECRET")
    jwt_algorithm: str = "HS256"
    jwt_expire_minutes: int = Field(default=30 * 24 * 60, alias="JWT_EXPIRE_MINUTES")  # 30 days
    auth_cookie_name: str = "token"
    reset_token_expire_minutes: int = 15

    # Uploads and image storage
    upload_dir: str = Field(default="uploads", alias="UPLOAD_DIR")
    max_upload_bytes: int = Field(default=5_000_000, alias="MAX_UPLOAD_BYTES")  # 5MB
    gcs_bucket: Optional[str] = Field(default=None, alias="GCS_BUCKET")
    gcs_prefix: str = Field(default="quality-control", alias="GCS_PREFIX")

    # Alert thresholds
    alert_defect_rate_threshold: float = Field(default=5.0, alias="ALERT_DEFECT_RATE_THRESHOLD")
    alert_on_critical_defect: bool = Field(default=True, alias="ALERT_ON_CRITICAL_DEFECT")
    alert_on_inspection_failure: bool = Field(default=True, alias="ALERT_ON_INSPECTION_FAILURE")

    # Notifications (Celery + SMTP)
    enable_notifications: bool = Field(default=False, alias="ENABLE_NOTIFICATIONS")
    redis_url: str = Field(default="redis://localhost:6379/0", alias="REDIS_URL")
    smtp_host: str = Field(default="", alias="SMTP_HOST")
    smtp_port: int = Field(default=587, alias="SMTP_PORT")
    smtp_user: str = Field(default="", alias="SMTP_USER")
    smtp_password: str = Field(default="", alias="SMTP_PASSWORD")
    mail_from: str = Field(default="qc-dashboard@localhost", alias="MAIL_FROM")

    # Defect classifier
    detection_weights_path: Optional[str] = Field(default=None, alias="DETECTION_WEIGHTS_PATH")
    detection_device: str = Field(default="cpu", alias="DETECTION_DEVICE")
    detection_defect_threshold: float = Field(default=0.6, alias="DETECTION_DEFECT_THRESHOLD")

    # Logging
    log_level: str = Field(default="INFO", alias="API_LOG_LEVEL")

    # Performance targets
    target_p95_latency_ms: int = 150
    slow_request_ms: int = 300

    @field_validator("cors_origins", mode="before")
    @classmethod
    def parse_cors_origins(cls, v: Any) -> List[str]:
        """Parse CORS origins from JSON string or list."""
        if isinstance(v, str):
            try:
                return json.loads(v)
            except json.JSONDecodeError:
                # Fall back to comma-separated list
                return [origin.strip() for origin in v.split(",")]
        return v

    @property
    def is_production(self) -> bool:
        return self.environment.lower() in ("prod", "production", "staging")

    @property
    def smtp_configured(self) -> bool:
        return bool(self.smtp_host)

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=True,
        extra="ignore",  # Ignore extra fields in .env file
        env_prefix="",  # No prefix for environment variables
        validate_default=True,
        populate_by_name=True  # Allow using both field name and alias for env vars
    )


# Global settings instance
_settings: Optional[APISettings] = None


def get_settings() -> APISettings:
    """Get global API settings (singleton)."""
    global _settings
    if _settings is None:
        _settings = APISettings()
    return _settings


def reset_settings() -> None:
    """Reset settings (useful for testing)."""
    global _settings
    _settings = None
