"""
Application settings (project, database, request logging).
"""
from typing import Optional

from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import BaseModel, Field


class DatabaseSettings(BaseModel):
    url: str = "sqlite+aiosqlite:///./payments.db"
    echo: bool = False


class Settings(BaseSettings):
    """Project settings."""

    PROJECT_NAME: str = Field(default="Payment Webhooks")
    VERSION: str = Field(default="1.0.0")
    DEBUG: bool = Field(default=False)
    ENVIRONMENT: str = Field(default="development")
    API_PREFIX: str = Field(default="/api/v1")

    database: DatabaseSettings = Field(default_factory=DatabaseSettings)

    # Create tables at startup instead of running Alembic migrations
    AUTO_CREATE_TABLES: bool = Field(default=False)

    # Host PaymentCallbacks implementation, "package.module:ClassName"
    PAYMENT_CALLBACKS: Optional[str] = Field(default=None)

    LOG_LEVEL: Optional[str] = Field(default=None)
    LOG_JSON: Optional[bool] = Field(default=None)

    # Request body logging (bodies carry credentials, keep it small)
    LOG_REQUEST_BODY_MAX_BYTES: int = Field(default=2048)

    model_config = SettingsConfigDict(
        env_file=".env",
        case_sensitive=False,
        extra="allow",
        env_nested_delimiter="__",
    )


settings = Settings()
