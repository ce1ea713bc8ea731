# product_ratings/core/config.py

"""
Configuration management for the product ratings backend.

All values can be overridden through environment variables or a ``.env``
file; secrets and connection strings never live in code.
"""

from decimal import Decimal
from functools import lru_cache

from pydantic import ValidationInfo, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

# Dialects with a native atomic upsert (INSERT ... ON CONFLICT DO UPDATE)
SUPPORTED_DIALECTS = ("postgresql", "sqlite")

# Scores and sums are stored with one decimal place
SCORE_RESOLUTION = Decimal("0.1")


class Settings(BaseSettings):
    """Application settings with environment variable support."""

    # Database Configuration
    database_url: str = "sqlite:///./product_ratings.db"
    db_pool_size: int = 10
    db_max_overflow: int = 20

    # Query logging
    log_sql_queries: bool = False
    slow_query_threshold_seconds: float = 1.0

    # Environment Settings
    environment: str = "development"
    debug: bool = True
    log_level: str = "INFO"

    # Rating rules
    rating_min_score: float = 0.0
    rating_max_score: float = 5.0
    rating_score_step: float = 0.5  # half-point increments
    rating_display_decimals: int = 1

    # Review text limits
    review_description_min_length: int = 10
    review_description_max_length: int = 1000

    # Transaction retry policy for transient store failures
    transaction_max_retries: int = 3
    transaction_retry_initial_delay: float = 0.05
    transaction_retry_max_delay: float = 1.0

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    @field_validator("database_url")
    @classmethod
    def validate_database_dialect(cls, v: str) -> str:
        """Only databases with an atomic upsert can hold the rating ledger."""
        dialect = v.split(":", 1)[0].split("+", 1)[0].lower()
        if dialect not in SUPPORTED_DIALECTS:
            raise ValueError(
                f"Unsupported database dialect '{dialect}', expected one of {', '.join(SUPPORTED_DIALECTS)}"
            )
        return v

    @field_validator("log_level")
    @classmethod
    def normalize_log_level(cls, v: str) -> str:
        """Accept log levels in any case."""
        return v.upper()

    @field_validator("rating_max_score")
    @classmethod
    def validate_score_range(cls, v: float, info: ValidationInfo) -> float:
        """Ensure the score range is not empty."""
        minimum = info.data.get("rating_min_score", 0.0)
        if v <= minimum:
            raise ValueError("rating_max_score must be greater than rating_min_score")
        return v

    @field_validator("rating_score_step")
    @classmethod
    def validate_score_step(cls, v: float) -> float:
        """Steps must be representable in the one-decimal score columns."""
        step = Decimal(str(v))
        if step <= 0 or step % SCORE_RESOLUTION != 0:
            raise ValueError(f"rating_score_step must be a positive multiple of {SCORE_RESOLUTION}")
        return v

    @property
    def is_production(self) -> bool:
        """Check if running in production environment."""
        return self.environment.lower() == "production"

    @property
    def is_development(self) -> bool:
        """Check if running in development environment."""
        return self.environment.lower() == "development"

    @property
    def uses_sqlite(self) -> bool:
        return self.database_url.startswith("sqlite")


@lru_cache()
def get_settings() -> Settings:
    """
    Get application settings (cached).

    Returns:
        Settings instance with environment variables loaded
    """
    return Settings()


# Export settings instance for easy import
settings = get_settings()


def validate_production_config(config: Settings = settings):
    """Validate configuration for production deployment."""
    if not config.is_production:
        return

    issues = []

    if config.debug:
        issues.append("DEBUG is enabled in production")

    if config.uses_sqlite:
        issues.append("SQLite cannot provide row-level locking in production")

    if issues:
        raise ValueError(f"Production configuration issues detected: {', '.join(issues)}")


# Validate on import if in production
if settings.is_production:
    validate_production_config()
