"""
otpdesk/core/config.py

Purpose: Application configuration

- Loads environment variables
- Centralizes config values (DB URI, provider credentials, timers)
- Validates configuration on startup
- Environment-specific settings
"""

from pydantic import Field, field_validator, ValidationInfo
from pydantic_settings import BaseSettings, SettingsConfigDict
from typing import Optional, Literal


class Settings(BaseSettings):
    """
    Application settings loaded from environment variables.
    Validates all required configs on startup.
    """
    
    # Environment
    ENVIRONMENT: Literal["development", "staging", "production"] = "development"
    
    # MongoDB
    MONGODB_URL: str = Field(
        default="mongodb://localhost:27017",
        description="MongoDB connection URI"
    )
    MONGODB_DB_NAME: str = Field(
        default="otpdesk",
        description="MongoDB database name"
    )
    
    # Number provider
    PROVIDER_API_URL: str = Field(
        default="https://api.numerasms.com/stubs/handler_api.php",
        description="Number provider handler endpoint"
    )
    PROVIDER_API_KEY: Optional[str] = Field(
        default=None,
        description="Number provider API key"
    )
    PROVIDER_SERVICE: str = Field(default="tpgs", description="Service code requested from the provider")
    PROVIDER_OPERATOR: str = Field(default="9", description="Operator code requested from the provider")
    PROVIDER_COUNTRY: str = Field(default="22", description="Country code requested from the provider")
    PROVIDER_MAX_PRICE: int = Field(default=37, description="Maximum price per number")
    PROVIDER_TIMEOUT: float = Field(
        default=30.0,
        description="Provider request timeout in seconds"
    )
    
    # Accounts
    ADMIN_USERNAME: str = Field(default="admin", description="Default admin username")
    ADMIN_PASSWORD: str = Field(default="admin123", description="Default admin password")
    
    # Order lifecycle
    TIMEZONE: str = Field(
        default="UTC",
        description="Timezone used for order date/time stamps and daily/monthly statistics"
    )
    ORDER_WINDOW_MINUTES: int = Field(
        default=20,
        description="Minutes an order stays on the active board before auto cancel/dismiss"
    )
    SMS_POLL_INTERVAL_SECONDS: float = Field(default=5.0, description="Client SMS poll interval")
    AUTO_BUY_INTERVAL_SECONDS: float = Field(default=3.0, description="Client auto-buy retry interval")
    MAX_AUTO_BUY_ATTEMPTS: int = Field(default=15, description="Maximum auto-buy attempts per run")
    TOP_PERFORMERS_LIMIT: int = Field(default=5, description="Number of employees in top performer lists")
    
    # Application
    DEBUG: bool = Field(
        default=False,
        description="Enable debug mode"
    )
    LOG_LEVEL: str = Field(
        default="INFO",
        description="Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)"
    )
    API_PREFIX: str = Field(
        default="/api",
        description="API route prefix"
    )
    CORS_ORIGINS: list = Field(
        default=["*"],
        description="Allowed CORS origins"
    )
    
    @field_validator("ADMIN_PASSWORD")
    @classmethod
    def validate_admin_password(cls, v, info: ValidationInfo):
        """Ensure the default admin password is changed in production."""
        if info.data.get("ENVIRONMENT") == "production" and v == "admin123":
            raise ValueError("ADMIN_PASSWORD must be changed in production environment")
        return v
    
    @field_validator("PROVIDER_API_KEY")
    @classmethod
    def validate_provider_key(cls, v, info: ValidationInfo):
        """Ensure the provider key is set in production."""
        if info.data.get("ENVIRONMENT") == "production" and not v:
            raise ValueError("PROVIDER_API_KEY is required in production environment")
        return v
    
    @property
    def is_development(self) -> bool:
        """Check if running in development mode."""
        return self.ENVIRONMENT == "development"
    
    @property
    def is_production(self) -> bool:
        """Check if running in production mode."""
        return self.ENVIRONMENT == "production"
    
    model_config = SettingsConfigDict(
        env_file=".env",
        case_sensitive=True,
        env_file_encoding="utf-8",
        extra="ignore",
    )


# Global settings instance
settings = Settings()


def validate_settings():
    """
    Validates critical settings on application startup.
    Raises ValueError if any required setting is missing or invalid.
    """
    errors = []
    
    if not settings.MONGODB_URL:
        errors.append("MONGODB_URL is required")
    
    if not settings.PROVIDER_API_URL:
        errors.append("PROVIDER_API_URL is required")
    
    if settings.MAX_AUTO_BUY_ATTEMPTS < 1:
        errors.append("MAX_AUTO_BUY_ATTEMPTS must be at least 1")
    
    try:
        from zoneinfo import ZoneInfo
        ZoneInfo(settings.TIMEZONE)
    except Exception:
        errors.append(f"TIMEZONE '{settings.TIMEZONE}' is not a known timezone")
    
    # Production-specific validations
    if settings.is_production and not settings.PROVIDER_API_KEY:
        errors.append("PROVIDER_API_KEY is required in production")
    
    if errors:
        raise ValueError(f"Configuration validation failed: {', '.join(errors)}")
    
    return True
