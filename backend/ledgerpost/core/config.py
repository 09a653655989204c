"""
Application Configuration
"""
from pydantic_settings import BaseSettings
from decimal import Decimal
from typing import List
import warnings


class Settings(BaseSettings):
    """Application settings loaded from environment variables"""

    # Application
    APP_NAME: str = "Ledger Posting API"
    APP_VERSION: str = "1.0.0"
    DEBUG: bool = False  # Default to False for security
    ENVIRONMENT: str = "development"  # development, staging, production

    # Database
    DATABASE_URL: str = "sqlite:///./ledger.db"
    TRANSACTION_TIMEOUT_SECONDS: float = 30.0

    # Security
    SECRET_KEY: str = "your-super-secret-key-change-in-production-min-32-chars"
    ALGORITHM: str = "HS256"
    ACCESS_TOKEN_EXPIRE_MINUTES: int = 1440  # 24 hours

    # Rate Limiting
    RATE_LIMIT_ENABLED: bool = True

    # CORS
    CORS_ORIGINS: str = "http://localhost:5173,http://127.0.0.1:5173"

    # Ledger
    DEFAULT_CURRENCY: str = "USD"
    CURRENCY_DECIMAL_PLACES: int = 2
    BALANCE_TOLERANCE: Decimal = Decimal("0.01")

    # System account codes used by document posting
    RECEIVABLE_ACCOUNT_CODE: str = "1200"
    PAYABLE_ACCOUNT_CODE: str = "2000"
    TAX_ACCOUNT_CODE: str = "2100"

    @property
    def cors_origins_list(self) -> List[str]:
        return [origin.strip() for origin in self.CORS_ORIGINS.split(",")]

    @property
    def database_url(self) -> str:
        """Get properly formatted database URL"""
        url = self.DATABASE_URL
        if url.startswith("file:"):
            path = url[5:]
            return f"sqlite:///{path}"
        # Heroku-style URLs
        if url.startswith("postgres://"):
            return "postgresql://" + url[len("postgres://"):]
        return url

    @property
    def is_production(self) -> bool:
        """Check if running in production environment"""
        return self.ENVIRONMENT.lower() == "production"

    @property
    def minor_unit(self) -> Decimal:
        """Smallest representable amount, e.g. Decimal('0.01')"""
        return Decimal(1).scaleb(-self.CURRENCY_DECIMAL_PLACES)

    def validate_security_settings(self):
        """Validate security settings and warn about insecure defaults"""
        default_keys = [
            "your-super-secret-key-change-in-production-min-32-chars",
            "dev-secret-key-change-in-production",
            "secret-key",
            "change-me",
        ]

        if self.SECRET_KEY in default_keys:
            if self.is_production:
                raise ValueError(
                    "CRITICAL: Default SECRET_KEY detected in production! "
                    "Set the SECRET_KEY environment variable to a secure random value."
                )
            else:
                warnings.warn(
                    "WARNING: Using default SECRET_KEY. "
                    "Set SECRET_KEY environment variable for production.",
                    UserWarning
                )

        if len(self.SECRET_KEY) < 32:
            if self.is_production:
                raise ValueError(
                    "CRITICAL: SECRET_KEY is too short for production! "
                    "Use at least 32 characters."
                )
            else:
                warnings.warn(
                    "WARNING: SECRET_KEY should be at least 32 characters.",
                    UserWarning
                )

        if self.is_production and self.DEBUG:
            raise ValueError(
                "CRITICAL: DEBUG mode is enabled in production! "
                "Set DEBUG=False for production environment."
            )

        if self.TRANSACTION_TIMEOUT_SECONDS <= 0:
            raise ValueError("TRANSACTION_TIMEOUT_SECONDS must be positive")

        return True

    class Config:
        env_file = ".env"
        case_sensitive = True


def load_settings(**overrides) -> Settings:
    """
    Build the settings object once at process start.

    Security problems are fatal in production and downgraded to warnings elsewhere.
    """
    settings = Settings(**overrides)
    try:
        settings.validate_security_settings()
    except ValueError as e:
        if settings.is_production:
            raise
        warnings.warn(str(e), UserWarning)
    return settings
