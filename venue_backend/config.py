from pydantic_settings import BaseSettings
from pydantic import Field, field_validator
from functools import lru_cache
from typing import List, Optional


class Settings(BaseSettings):
    # Environment
    environment: str = Field(default="development", alias="ENVIRONMENT")
    
    # Database - PostgreSQL for production, SQLite for development
    database_url: str = Field(
        default="sqlite:///./venue.db",
        alias="DATABASE_URL"
    )
    
    # Admin sessions are signed by the identity provider with this key
    secret_key: str = Field(default="dev-secret-key-at-least-32-characters-long-for-development", alias="SECRET_KEY")
    algorithm: str = Field(default="HS256", alias="ALGORITHM")
    admin_allowed_domain: str = Field(default="", alias="ADMIN_ALLOWED_DOMAIN")
    
    # Shared secret presented by the external scheduler
    cron_secret: str = Field(default="", alias="CRON_SECRET")
    cron_timeout_seconds: float = Field(default=25.0, alias="CRON_TIMEOUT_SECONDS")
    
    # CORS - Frontend URLs from environment (comma-separated)
    allowed_origins: str = Field(
        default="http://localhost:3000,http://127.0.0.1:3000",
        alias="ALLOWED_ORIGINS"
    )
    
    # ==============================================
    # Booking lifecycle
    # ==============================================
    check_in_grace_period_seconds: int = Field(default=3600, alias="CHECK_IN_GRACE_PERIOD_SECONDS")
    auto_update_batch_size: int = Field(default=50, alias="AUTO_UPDATE_BATCH_SIZE")
    
    # Reminder windows: [offset - half_width, offset + half_width) from now
    reminder_7day_offset_hours: int = Field(default=168, alias="REMINDER_7DAY_OFFSET_HOURS")
    reminder_7day_half_width_hours: int = Field(default=12, alias="REMINDER_7DAY_HALF_WIDTH_HOURS")
    reminder_24h_offset_hours: int = Field(default=24, alias="REMINDER_24H_OFFSET_HOURS")
    reminder_24h_half_width_hours: int = Field(default=2, alias="REMINDER_24H_HALF_WIDTH_HOURS")
    
    # Dedup ledger window
    email_dedup_window_seconds: int = Field(default=86400, alias="EMAIL_DEDUP_WINDOW_SECONDS")
    
    # ==============================================
    # Mail transport
    # ==============================================
    mail_server: str = Field(default="smtp.gmail.com", alias="MAIL_SERVER")
    mail_port: int = Field(default=587, alias="MAIL_PORT")
    mail_username: str = Field(default="", alias="MAIL_USERNAME")
    mail_password: str = Field(default="", alias="MAIL_PASSWORD")
    mail_from: str = Field(default="noreply@example.com", alias="MAIL_FROM")
    mail_from_name: str = Field(default="Venue Reservations", alias="MAIL_FROM_NAME")
    mail_starttls: bool = Field(default=True, alias="MAIL_STARTTLS")
    mail_ssl_tls: bool = Field(default=False, alias="MAIL_SSL_TLS")
    mail_suppress_send: bool = Field(default=False, alias="MAIL_SUPPRESS_SEND")
    
    # Operations inbox for digests and auto-update summaries
    reservation_email: str = Field(default="", alias="RESERVATION_EMAIL")
    
    # Timezone used when rendering dates in emails
    display_timezone: str = Field(default="UTC", alias="DISPLAY_TIMEZONE")
    
    # ==============================================
    # Deposit evidence (blob storage)
    # ==============================================
    blob_fetch_timeout_seconds: float = Field(default=10.0, alias="BLOB_FETCH_TIMEOUT_SECONDS")
    blob_user_agent: str = Field(default="Venue-Reservation-System/1.0", alias="BLOB_USER_AGENT")
    deposit_image_cache_seconds: int = Field(default=300, alias="DEPOSIT_IMAGE_CACHE_SECONDS")
    
    # Logging
    log_level: str = Field(default="INFO", alias="LOG_LEVEL")
    log_json: bool = Field(default=True, alias="LOG_JSON")
    
    # Rate limiting (e.g. redis://host:6379 for multiple instances)
    rate_limit_storage_uri: str = Field(default="memory://", alias="RATE_LIMIT_STORAGE_URI")
    
    @field_validator('secret_key')
    @classmethod
    def validate_secret_key(cls, v: str) -> str:
        """Validate SECRET_KEY is strong enough"""
        if not v:
            raise ValueError("SECRET_KEY is required and cannot be empty")
        if len(v) < 32:
            raise ValueError("SECRET_KEY must be at least 32 characters long")
        return v
    
    @field_validator('auto_update_batch_size')
    @classmethod
    def validate_batch_size(cls, v: int) -> int:
        if v < 1:
            raise ValueError("AUTO_UPDATE_BATCH_SIZE must be positive")
        return v
    
    @property
    def is_production(self) -> bool:
        return self.environment.lower() == "production"
    
    @property
    def operations_email(self) -> Optional[str]:
        """Recipient for digests and auto-update summaries"""
        return self.reservation_email or self.mail_username or None
    
    @property
    def cors_origins(self) -> List[str]:
        """
        Parse allowed origins from comma-separated string.
        Returns a list suitable for CORSMiddleware.
        """
        origins = []
        for origin in self.allowed_origins.split(","):
            origin = origin.strip().rstrip("/")
            if origin and origin not in origins:
                origins.append(origin)
        return origins
    
    class Config:
        env_file = ".env"
        extra = "ignore"
        populate_by_name = True


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance"""
    return Settings()


# Initialize settings on module load
settings = get_settings()
