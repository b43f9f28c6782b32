"""Pytest bootstrap configuration.

Settings are read at import time, so the environment is pinned before any
application module is collected.
"""
import os

os.environ.setdefault("DEBUG", "false")
os.environ.setdefault("DATABASE__URL", "sqlite+aiosqlite:///:memory:")

import itertools
import uuid
from datetime import datetime, timezone
from typing import Optional

import pytest

from application.ports.payment_callbacks import PaymentCallbacks
from core.settings import ClickSettings, PaymeSettings, PaymentSettings, PaynetSettings
from domain.payment.entity import Transaction, TransactionStatus
from infrastructure.external.payments.click import sign_click_request
from infrastructure.external.payments.crypto import basic_credentials
from infrastructure.repositories.memory_store import InMemoryPaymentStore


PAYME_SECRET = "payme-test-key"
CLICK_SECRET = "click-test-secret"
CLICK_SERVICE_ID = "1001"
PAYNET_USERNAME = "paynet"
PAYNET_PASSWORD = "paynet-pass"
PAYNET_SERVICE_ID = "77"


class RecordingCallbacks(PaymentCallbacks):
    """Callbacks fake that records every call and can be told to fail."""

    def __init__(self):
        self.completed: list[Transaction] = []
        self.cancelled: list[Transaction] = []
        self.password_changes: list[str] = []
        self.fail_completion = False
        self.fail_cancellation = False
        self.user_info = None
        self.fiscal_data = None

    async def on_payment_completed(self, transaction: Transaction) -> None:
        if self.fail_completion:
            raise RuntimeError("entitlement service unavailable")
        self.completed.append(transaction)

    async def on_payment_cancelled(self, transaction: Transaction) -> None:
        if self.fail_cancellation:
            raise RuntimeError("entitlement service unavailable")
        self.cancelled.append(transaction)

    async def get_user_info(self, user_id: str):
        return self.user_info

    async def get_fiscal_data(self, transaction: Transaction):
        return self.fiscal_data

    async def on_password_change_requested(self, new_password: str) -> None:
        self.password_changes.append(new_password)


_short_ids = itertools.count(10000)


@pytest.fixture
def store() -> InMemoryPaymentStore:
    return InMemoryPaymentStore()


@pytest.fixture
def callbacks() -> RecordingCallbacks:
    return RecordingCallbacks()


@pytest.fixture
def make_tx(store):
    """Seed a transaction into the in-memory store and return it."""

    def _make(
        *,
        status: TransactionStatus = TransactionStatus.PENDING,
        amount: int = 5_000_000,
        provider: str = "payme",
        user_id: str = "user-1",
        plan_id: Optional[str] = None,
        short_id: Optional[str] = None,
        created_at: Optional[datetime] = None,
        **fields,
    ) -> Transaction:
        tx = Transaction(
            id=fields.pop("id", str(uuid.uuid4())),
            user_id=user_id,
            plan_id=plan_id or f"plan-{uuid.uuid4().hex[:6]}",
            provider=provider,
            amount=amount,
            status=status,
            short_id=short_id or str(next(_short_ids)),
            created_at=created_at or datetime.now(timezone.utc),
            **fields,
        )
        return store.add(tx)

    return _make


@pytest.fixture
def payme_config() -> PaymeSettings:
    return PaymeSettings(merchant_id="merchant-1", secret_key=PAYME_SECRET)


@pytest.fixture
def click_config() -> ClickSettings:
    return ClickSettings(
        service_id=CLICK_SERVICE_ID,
        merchant_id="2002",
        merchant_user_id="3003",
        secret_key=CLICK_SECRET,
    )


@pytest.fixture
def paynet_config() -> PaynetSettings:
    return PaynetSettings(service_id=PAYNET_SERVICE_ID, username=PAYNET_USERNAME, password=PAYNET_PASSWORD)


@pytest.fixture
def provider_settings(payme_config, click_config, paynet_config) -> PaymentSettings:
    return PaymentSettings(payme=payme_config, click=click_config, paynet=paynet_config)


@pytest.fixture
def payme_auth(payme_config) -> str:
    return basic_credentials(payme_config.login, PAYME_SECRET)


@pytest.fixture
def paynet_auth() -> str:
    return basic_credentials(PAYNET_USERNAME, PAYNET_PASSWORD)


@pytest.fixture
def click_request():
    """Build a signed Click request body."""

    def _build(action: int, merchant_trans_id: str, amount, *, click_trans_id: int = 555001, **extra) -> dict:
        body = {
            "click_trans_id": click_trans_id,
            "service_id": int(CLICK_SERVICE_ID),
            "click_paydoc_id": 777,
            "merchant_trans_id": merchant_trans_id,
            "amount": amount,
            "action": action,
            "error": 0,
            "error_note": "Success",
            "sign_time": "2025-12-30 10:29:03",
            **extra,
        }
        body["sign_string"] = sign_click_request(CLICK_SECRET, body)
        return body

    return _build
