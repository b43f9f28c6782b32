"""
Payment provider settings using pydantic-settings v2 with nested env keys.

Example environment:
    PAYME__MERCHANT_ID=...  PAYME__SECRET_KEY=...
    CLICK__SERVICE_ID=...   CLICK__SECRET_KEY=...
    PAYNET__SERVICE_ID=...  PAYNET__USERNAME=...  PAYNET__PASSWORD=...
"""
from __future__ import annotations

from typing import Optional
from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import BaseModel, Field


class PaymeSettings(BaseModel):
    merchant_id: Optional[str] = None
    secret_key: Optional[str] = None
    test_mode: bool = False
    login: str = "Paycom"
    # PREPARED transactions older than this may be re-created with a new Payme id
    prepare_timeout_ms: int = 12 * 60 * 60 * 1000

    @property
    def is_configured(self) -> bool:
        return bool(self.merchant_id and self.secret_key)


class ClickSettings(BaseModel):
    service_id: Optional[str] = None
    merchant_id: Optional[str] = None
    merchant_user_id: Optional[str] = None
    secret_key: Optional[str] = None

    @property
    def is_configured(self) -> bool:
        return bool(self.service_id and self.secret_key)


class PaynetSettings(BaseModel):
    service_id: Optional[str] = None
    username: Optional[str] = None
    password: Optional[str] = None

    @property
    def is_configured(self) -> bool:
        return bool(self.service_id and self.username and self.password)


class PaymentSettings(BaseSettings):
    payme: PaymeSettings = Field(default_factory=PaymeSettings)
    click: ClickSettings = Field(default_factory=ClickSettings)
    paynet: PaynetSettings = Field(default_factory=PaynetSettings)

    short_id_max_retries: int = 10

    model_config = SettingsConfigDict(
        env_file=".env",
        case_sensitive=False,
        extra="allow",
        env_nested_delimiter="__",
    )


payment_settings = PaymentSettings()
