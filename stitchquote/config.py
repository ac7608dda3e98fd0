# stitchquote/config.py
import os
from functools import lru_cache
from typing import List, Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    # === General ===
    APP_NAME: str = "StitchQuote"
    SHOP_NAME: str = "Maggio Upholstery"
    ENVIRONMENT: str = "local"  # local | development | production
    PUBLIC_BASE_URL: str = "http://localhost:8000"
    ALLOWED_ORIGINS: List[str] = ["*"]

    # === Database ===
    DATABASE_URL: str = "sqlite:///./stitchquote.db"

    # === Logging / errors ===
    LOG_LEVEL: str = "INFO"
    SENTRY_DSN: Optional[str] = None

    # === OpenAI ===
    OPENAI_API_KEY: Optional[str] = None
    ASSESSMENT_MODEL: str = "gpt-4o-mini"
    RENDER_MODEL: str = "gpt-5"
    RENDER_IMAGE_SIZE: str = "1024x1024"
    RENDER_IMAGE_QUALITY: str = "medium"
    UPSTREAM_RETRY_ATTEMPTS: int = Field(2, ge=1, description="Attempts per upstream AI call")

    # === E-mail (Postmark) ===
    POSTMARK_SERVER_TOKEN: Optional[str] = None
    POSTMARK_FROM: Optional[str] = None
    POSTMARK_MESSAGE_STREAM: str = "outbound"
    QUOTE_TO_EMAIL: str = "trimmer@maggioupholstery.com"

    # === Storage ===
    STORAGE_BACKEND: str = "local"  # local | s3
    LOCAL_STORAGE_PATH: str = "data"
    S3_BUCKET: Optional[str] = None
    S3_REGION: str = "us-east-1"

    # === Admin ===
    ADMIN_PASSWORD: Optional[str] = None
    JWT_SECRET: str = "change-me"
    ADMIN_SESSION_HOURS: int = 12
    COOKIE_SECURE: bool = True

    # === Rate limiting ===
    RATE_LIMIT_ENABLED: bool = True
    RATE_LIMIT_QUOTE: str = "10/minute"
    RATE_LIMIT_RENDER: str = "6/minute"
    RATE_LIMIT_UPLOAD: str = "30/minute"

    # === Intake ===
    MAX_PHOTOS: int = 3
    MAX_UPLOAD_MB: int = 12

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    @property
    def max_upload_bytes(self) -> int:
        return self.MAX_UPLOAD_MB * 1024 * 1024

    def admin_url_for(self, quote_id: str) -> str:
        return f"{self.PUBLIC_BASE_URL.rstrip('/')}/admin/quotes/{quote_id}"


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Singleton Settings instance with simple environment overrides."""
    s = Settings()

    env = os.getenv("ENVIRONMENT", s.ENVIRONMENT).lower()
    if env == "production":
        s.LOG_LEVEL = "WARNING"
    elif env == "development":
        s.LOG_LEVEL = "DEBUG"
        s.COOKIE_SECURE = False
    elif env == "local":
        s.COOKIE_SECURE = False

    return s
