from typing import Literal

from pydantic import Field, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class DatabaseSettings(BaseSettings):
    url: str = "sqlite:///data/ridehail.db"
    echo: bool = False

    model_config = SettingsConfigDict(env_prefix="DB_")


class FareSettings(BaseSettings):
    """Fare rule: base + per-km rate. A zero base fare selects the per-km only variant."""

    base_fare: float = Field(default=2.0, ge=0.0)
    per_km_rate: float = Field(default=1.0, gt=0.0)
    average_speed_kmh: float = Field(
        default=40.0,
        gt=0.0,
        le=200.0,
        description="Assumed average speed used for duration estimates",
    )
    currency: str = "myr"

    model_config = SettingsConfigDict(env_prefix="FARE_")

    @field_validator("currency")
    @classmethod
    def validate_currency(cls, v: str) -> str:
        if len(v) != 3 or not v.isalpha():
            raise ValueError("Currency must be a three-letter ISO code")
        return v.lower()


class MatchingSettings(BaseSettings):
    """Proximity search configuration."""

    radius_km: float = Field(default=5.0, gt=0.0, le=50.0)
    h3_resolution: int = Field(default=7, ge=4, le=10)

    model_config = SettingsConfigDict(env_prefix="MATCHING_")


class RedisSettings(BaseSettings):
    host: str = "localhost"
    port: int = 6379
    db: int = 0
    password: str | None = None
    enabled: bool = True

    model_config = SettingsConfigDict(env_prefix="REDIS_")


class AuthSettings(BaseSettings):
    jwt_secret: str = Field(default="", description="HS256 signing secret")
    jwt_algorithm: Literal["HS256", "HS384", "HS512"] = "HS256"
    token_ttl_days: int = Field(default=7, ge=1, le=90)
    login_rate_limit: str = "10/minute"

    model_config = SettingsConfigDict(env_prefix="AUTH_")


class PaymentSettings(BaseSettings):
    api_key: str = ""
    webhook_secret: str = ""
    base_url: str = "https://api.stripe.com"
    timeout: float = Field(default=10.0, gt=0.0, le=60.0)
    webhook_tolerance_seconds: int = Field(default=300, ge=0)
    reconcile_max_attempts: int = Field(default=3, ge=1, le=10)
    reconcile_base_delay: float = Field(default=0.5, ge=0.0, le=5.0)

    model_config = SettingsConfigDict(env_prefix="STRIPE_")

    @field_validator("base_url")
    @classmethod
    def validate_url(cls, v: str) -> str:
        if not v.startswith(("http://", "https://")):
            raise ValueError("Payment processor URL must start with http:// or https://")
        return v.rstrip("/")


class LoggingSettings(BaseSettings):
    level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = "INFO"
    format: Literal["text", "json"] = "text"
    environment: str = "development"

    model_config = SettingsConfigDict(env_prefix="LOG_")


class CORSSettings(BaseSettings):
    origins: str = "http://localhost:3000"

    model_config = SettingsConfigDict(env_prefix="CORS_")


class Settings(BaseSettings):
    database: DatabaseSettings = Field(default_factory=DatabaseSettings)
    fare: FareSettings = Field(default_factory=FareSettings)
    matching: MatchingSettings = Field(default_factory=MatchingSettings)
    redis: RedisSettings = Field(default_factory=RedisSettings)
    auth: AuthSettings = Field(default_factory=AuthSettings)
    payment: PaymentSettings = Field(default_factory=PaymentSettings)
    logging: LoggingSettings = Field(default_factory=LoggingSettings)
    cors: CORSSettings = Field(default_factory=CORSSettings)

    model_config = SettingsConfigDict(
        env_nested_delimiter="__",
        case_sensitive=False,
    )

    @model_validator(mode="after")
    def require_jwt_secret_outside_development(self) -> "Settings":
        if self.logging.environment == "production" and not self.auth.jwt_secret:
            raise ValueError("AUTH_JWT_SECRET must be set in production")
        return self


def get_settings() -> Settings:
    """Load and validate settings from environment variables."""
    return Settings()
