"""Application configuration using Pydantic Settings."""

from functools import lru_cache

from pydantic import AliasChoices, Field, computed_field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Application
    app_name: str = Field(default="Notification Dispatch API")
    app_env: str = Field(default="development")
    debug: bool = Field(default=False)
    log_level: str = Field(default="INFO")
    app_base_url: str = Field(
        default="http://localhost:5000",
        description="Public web app URL used to build absolute links in emails",
    )

    # Server
    host: str = Field(default="0.0.0.0")
    port: int = Field(default=8000)

    # Database
    database_url: str = Field(
        default="postgresql+asyncpg://localhost:5432/notifications",
        description="PostgreSQL connection URL with asyncpg driver",
    )

    # JWT Authentication
    jwt_secret_key: str = Field(
        default="CHANGE-ME-IN-PRODUCTION",
        description="Secret key for JWT signing (HS256)",
    )
    jwt_algorithm: str = Field(default="HS256")
    jwt_expire_minutes: int = Field(default=30)
    jwt_jwks_url: str = Field(
        default="",
        description="JWKS endpoint of the identity provider for ES256 tokens",
    )
    admin_role: str = Field(default="admin")

    # Web push (VAPID)
    vapid_public_key: str = Field(default="")
    vapid_private_key: str = Field(default="")
    vapid_subject: str = Field(default="mailto:support@dinemaison.com")

    # Mobile push (Expo push service)
    expo_push_url: str = Field(default="https://exp.host/--/api/v2/push/send")
    expo_access_token: str = Field(default="")

    # Email (SMTP)
    smtp_host: str = Field(default="")
    smtp_port: int = Field(default=587)
    smtp_user: str = Field(default="")
    smtp_password: str = Field(default="")
    smtp_from: str = Field(default="noreply@dinemaison.com")
    smtp_from_name: str = Field(default="Dine Maison")

    # SMS (Twilio)
    sms_enabled: bool = Field(
        default=False,
        validation_alias=AliasChoices("notifications_sms_enabled", "sms_enabled"),
    )
    twilio_account_sid: str = Field(default="")
    twilio_auth_token: str = Field(default="")
    twilio_phone_number: str = Field(default="")
    twilio_api_base: str = Field(default="https://api.twilio.com/2010-04-01")

    # Delivery behaviour
    push_timeout_seconds: float = Field(default=10.0)
    email_timeout_seconds: float = Field(default=15.0)
    sms_timeout_seconds: float = Field(default=10.0)
    websocket_timeout_seconds: float = Field(default=5.0)
    notification_max_attempts: int = Field(
        default=3,
        description="Total attempts per channel, including the first one",
    )
    notification_retry_base_delay_seconds: float = Field(default=2.0)
    notification_retention_days: int = Field(default=90)

    # WebSocket
    websocket_path: str = Field(default="/ws")
    websocket_heartbeat_seconds: float = Field(
        default=30.0,
        description="Interval between server pings; silent connections are closed after one interval",
    )

    # Rate Limiting
    rate_limit_enabled: bool = Field(
        default=True,
        description="Enable/disable rate limiting (disable for tests)",
    )

    # CORS
    cors_origins: str = Field(
        default="http://localhost:3000,http://localhost:5173",
        description="Comma-separated list of allowed origins",
    )

    @computed_field  # type: ignore[prop-decorator]
    @property
    def async_database_url(self) -> str:
        """Ensure the database URL uses the asyncpg driver scheme.

        Hosting providers supply a standard ``postgresql://`` URL.
        SQLAlchemy's async engine requires ``postgresql+asyncpg://``.
        """
        url = self.database_url
        if url.startswith("postgresql://"):
            url = url.replace("postgresql://", "postgresql+asyncpg://", 1)
        return url

    @computed_field  # type: ignore[prop-decorator]
    @property
    def is_production(self) -> bool:
        """Check if running in production environment."""
        return self.app_env == "production"

    @computed_field  # type: ignore[prop-decorator]
    @property
    def cors_origins_list(self) -> list[str]:
        """Parse CORS origins into a list."""
        return [origin.strip() for origin in self.cors_origins.split(",") if origin.strip()]

    @computed_field  # type: ignore[prop-decorator]
    @property
    def web_push_configured(self) -> bool:
        """Both VAPID keys are present."""
        return bool(self.vapid_public_key and self.vapid_private_key)

    @computed_field  # type: ignore[prop-decorator]
    @property
    def smtp_configured(self) -> bool:
        """SMTP host and credentials are present."""
        return bool(self.smtp_host and self.smtp_user and self.smtp_password)

    @computed_field  # type: ignore[prop-decorator]
    @property
    def sms_configured(self) -> bool:
        """SMS is switched on and Twilio credentials are present."""
        return bool(
            self.sms_enabled
            and self.twilio_account_sid
            and self.twilio_auth_token
            and self.twilio_phone_number
        )


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()


settings = get_settings()
