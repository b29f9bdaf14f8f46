"""Application configuration"""

from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import Field
from typing import Optional


class Settings(BaseSettings):
    """Application settings."""

    model_config = SettingsConfigDict(env_file=".env", case_sensitive=True, extra="ignore")

    # API Configuration
    API_V1_PREFIX: str = "/api/v1"
    PROJECT_NAME: str = "MealRelay"
    VERSION: str = "1.0.0"
    DESCRIPTION: str = "Home-chef food delivery marketplace: order lifecycle, ledger and dispatch"

    # Security
    SECRET_KEY: str = Field(...)
    ACCESS_TOKEN_EXPIRE_MINUTES: int = Field(default=30)
    ALGORITHM: str = "HS256"

    # Database
    DATABASE_URL: str = Field(...)
    DB_LOCK_TIMEOUT_MS: int = Field(default=5000)

    # Redis
    REDIS_URL: str = Field(default="redis://localhost:6379")

    # Commission policy
    PLATFORM_FEE_RATE: float = Field(default=0.15)
    TAX_RATE: float = Field(default=0.08)
    DEFAULT_DELIVERY_FEE_CENTS: int = Field(default=500)  # $5.00

    # Dispatch policy
    DEFAULT_SEARCH_RADIUS_KM: float = Field(default=10.0)
    MAX_DRIVER_CANDIDATES: int = Field(default=20)
    PICKUP_MINUTES_PER_KM: float = Field(default=3.0)  # ~20 km/h effective
    FALLBACK_SPEED_KMH: float = Field(default=48.0)  # used when the route service is unavailable
    ASSIGNMENT_ACCEPT_TIMEOUT_SECONDS: int = Field(default=120)
    AUTO_DISPATCH_ENABLED: bool = Field(default=True)

    # External collaborators
    EXTERNAL_CALL_TIMEOUT_SECONDS: float = Field(default=10.0)
    STRIPE_SECRET_KEY: Optional[str] = Field(default=None)
    GOOGLE_MAPS_API_KEY: Optional[str] = Field(default=None)
    GOOGLE_DISTANCE_MATRIX_URL: str = Field(
        default="https://maps.googleapis.com/maps/api/distancematrix/json"
    )
    NOTIFICATION_SERVICE_URL: Optional[str] = Field(default=None)
    DISPATCH_PARTNER_URL: Optional[str] = Field(default=None)

    # Outbox relay
    OUTBOX_BATCH_SIZE: int = Field(default=50)
    OUTBOX_MAX_ATTEMPTS: int = Field(default=8)
    OUTBOX_RETRY_BASE_SECONDS: int = Field(default=15)

    # CORS
    ALLOWED_HOSTS: list[str] = Field(default=["http://localhost:3000"])

    # Development
    DEBUG: bool = Field(default=False)
    TESTING: bool = Field(default=False)
    ENVIRONMENT: str = Field(default="development")
    LOG_LEVEL: str = Field(default="INFO")


settings = Settings()
