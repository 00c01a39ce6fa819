"""Application configuration and settings management.

This module defines the application settings loaded from environment
variables and provides helper functions for accessing cached settings
and email configuration.
"""

from functools import lru_cache
from typing import List

from fastapi_mail import ConnectionConfig
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application configuration loaded from environment variables.

    Attributes:
        DATABASE_URL: Database connection string.
        SECRET_KEY: Secret key used for JWT signing.
        ALGORITHM: Algorithm used to encode JWT tokens.
        ACCESS_TOKEN_EXPIRE_MINUTES: Access token lifetime in minutes.
        REFRESH_TOKEN_EXPIRE_MINUTES: Refresh token lifetime in minutes.
        ALLOWED_ORIGINS: Allowed origins for CORS.
        REDIS_URL: Redis connection URL for rate limiting and caching.
        RATE_LIMIT_ENABLED: Whether request throttling is active.
        CLOUDINARY_URL: Cloudinary connection URL for photo uploads.
        UPLOAD_DIR: Local directory for photos when Cloudinary is not set.
        MAX_PHOTOS: Maximum number of photos per upload.
        MAX_PHOTO_BYTES: Maximum size of a single photo.
        DEFAULT_PAGE_SIZE: Page size used when none is requested.
        MAX_PAGE_SIZE: Upper bound for requested page sizes.
        MAP_MAX_ANIMALS: Upper bound for the map view payload.
        STATS_MONTHS: Trailing window for the monthly adoption chart.
        TOP_CITIES_LIMIT: Number of cities in the top cities chart.
        STRICT_ADOPTION_TRANSITIONS: Enforce the adoption request lattice.
        SMTP_FROM_EMAIL: Sender email address for outgoing emails.
        SMTP_USER: SMTP username.
        SMTP_PASSWORD: SMTP password.
        SMTP_PORT: SMTP server port.
        SMTP_HOST: SMTP server host.
        MAIL_SUPPRESS_SEND: Build messages without delivering them.
        SITE_NAME: Name used in email subjects and signatures.
        BASE_URL: Base URL of the application.
        LOG_LEVEL: Root logging level.
    """

    DATABASE_URL: str = "sqlite:///./strayhome.db"
    SECRET_KEY: str = "dev-secret"
    ALGORITHM: str = "HS256"
    ACCESS_TOKEN_EXPIRE_MINUTES: int = 30
    REFRESH_TOKEN_EXPIRE_MINUTES: int = 60 * 24 * 7
    ALLOWED_ORIGINS: List[str] = ["*"]
    REDIS_URL: str = "redis://redis:6379"
    RATE_LIMIT_ENABLED: bool = True
    CLOUDINARY_URL: str | None = None
    UPLOAD_DIR: str = "uploads"
    MAX_PHOTOS: int = 5
    MAX_PHOTO_BYTES: int = 5 * 1024 * 1024
    DEFAULT_PAGE_SIZE: int = 12
    MAX_PAGE_SIZE: int = 100
    MAP_MAX_ANIMALS: int = 1000
    STATS_MONTHS: int = 12
    TOP_CITIES_LIMIT: int = 10
    STRICT_ADOPTION_TRANSITIONS: bool = True
    SMTP_FROM_EMAIL: str = "noreply@example.com"
    SMTP_USER: str = "user"
    SMTP_PASSWORD: str = "password"
    SMTP_PORT: int = 1025
    SMTP_HOST: str = "localhost"
    MAIL_SUPPRESS_SEND: bool = False
    SITE_NAME: str = "StrayHome"
    BASE_URL: str = "http://localhost:8000"
    LOG_LEVEL: str = "INFO"

    model_config = SettingsConfigDict(env_file=".env", extra="allow")


@lru_cache()
def get_settings() -> Settings:
    """Return cached application settings.

    The settings object is cached to prevent reloading environment
    variables multiple times during application lifetime.
    """

    return Settings()


def get_mail_config() -> ConnectionConfig:
    """Create and return email configuration for FastAPI-Mail.

    Returns:
        ConnectionConfig: Configured email connection settings.
    """

    settings = get_settings()
    return ConnectionConfig(
        MAIL_USERNAME=settings.SMTP_USER,
        MAIL_PASSWORD=settings.SMTP_PASSWORD,
        MAIL_FROM=settings.SMTP_FROM_EMAIL,
        MAIL_PORT=settings.SMTP_PORT,
        MAIL_SERVER=settings.SMTP_HOST,
        MAIL_FROM_NAME=settings.SITE_NAME,
        MAIL_STARTTLS=True,
        MAIL_SSL_TLS=False,
        USE_CREDENTIALS=True,
        SUPPRESS_SEND=int(settings.MAIL_SUPPRESS_SEND),
    )
