"""
Payment DTOs (Pydantic v2) used at application boundaries.
"""
from __future__ import annotations

from typing import Any, Optional, Literal, Union
from pydantic import BaseModel, Field, ConfigDict, StrictFloat, StrictInt, StrictStr, field_validator
from pydantic.types import condecimal


ProviderName = Literal["payme", "click", "paynet"]


class CreatePayment(BaseModel):
    provider: ProviderName
    user_id: str = Field(min_length=1)
    plan_id: str = Field(min_length=1)
    amount: condecimal(gt=0)  # type: ignore[valid-type]  # major units (so'm)

    @field_validator("user_id", "plan_id")
    @classmethod
    def _not_blank(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("must not be blank")
        return v


class CreatedPayment(BaseModel):
    transaction_id: str
    provider: ProviderName
    amount: int  # minor units
    short_id: Optional[str] = None
    reused: bool = False


class WebhookResult(BaseModel):
    """Transport-neutral webhook response: HTTP status plus JSON body."""
    status: int = 200
    body: dict[str, Any]


# ---------------------------------------------------------------------------
# Envelopes
# ---------------------------------------------------------------------------

class PaymeRequest(BaseModel):
    """Payme JSON-RPC envelope. Params are read leniently by each method."""
    model_config = ConfigDict(extra="ignore")

    method: StrictStr = Field(min_length=1)
    id: Union[StrictInt, StrictFloat]
    params: dict[str, Any] = Field(default_factory=dict)


class PaynetRequest(BaseModel):
    """Paynet JSON-RPC 2.0 envelope."""
    model_config = ConfigDict(extra="ignore")

    jsonrpc: Optional[str] = None
    method: StrictStr = Field(min_length=1)
    id: Any
    params: dict[str, Any]


# ---------------------------------------------------------------------------
# Callback payloads
# ---------------------------------------------------------------------------

class FiscalItem(BaseModel):
    title: str
    price: int  # minor units
    count: int
    code: str  # MXIK code
    package_code: str
    vat_percent: int
    discount: Optional[int] = None


class FiscalDetail(BaseModel):
    """Fiscal receipt detail returned to Payme in CheckPerformTransaction."""
    receipt_type: int = 0  # 0 = sale, 1 = refund
    items: list[FiscalItem]


class UserInfo(BaseModel):
    """Display fields returned to Paynet in GetInformation."""
    model_config = ConfigDict(extra="allow")

    name: str
