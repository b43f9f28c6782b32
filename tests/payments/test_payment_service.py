import asyncio
from decimal import Decimal

import pytest

from application.dtos.payments import CreatePayment
from application.services import payment_service as payment_service_module
from application.services.payment_service import PaymentService
from core.settings import PaymentSettings
from domain.common.exceptions import (
    DomainValidationException,
    ProviderNotConfiguredException,
    ShortIdGenerationException,
)
from domain.payment.entity import Transaction, TransactionStatus
from infrastructure.repositories.memory_store import InMemoryPaymentStore


def _request(provider="payme", amount="50000", user_id="user-1", plan_id="plan-1"):
    return CreatePayment(provider=provider, user_id=user_id, plan_id=plan_id, amount=Decimal(amount))


@pytest.fixture
def service(store, callbacks, provider_settings):
    return PaymentService(store, callbacks, settings=provider_settings)


@pytest.mark.asyncio
async def test_create_stores_minor_units(service, store):
    created = await service.create_payment(_request())
    assert created.amount == 5_000_000
    assert created.short_id is None
    assert created.reused is False

    tx = await store.get_transaction_by_id(created.transaction_id)
    assert tx.status == TransactionStatus.PENDING
    assert tx.provider == "payme"


@pytest.mark.asyncio
async def test_pending_transaction_is_reused(service, store):
    first = await service.create_payment(_request())
    second = await service.create_payment(_request(amount="60000"))

    assert second.transaction_id == first.transaction_id
    assert second.reused is True
    assert len(store) == 1
    assert (await store.get_transaction_by_id(first.transaction_id)).amount == 6_000_000


@pytest.mark.asyncio
async def test_click_gets_five_digit_short_id(service):
    created = await service.create_payment(_request(provider="click"))
    assert created.short_id is not None
    assert len(created.short_id) == 5
    assert 10000 <= int(created.short_id) <= 99999


@pytest.mark.asyncio
async def test_switching_provider_assigns_short_id(service, store):
    first = await service.create_payment(_request(provider="payme"))
    second = await service.create_payment(_request(provider="paynet"))

    assert second.transaction_id == first.transaction_id
    tx = await store.get_transaction_by_id(first.transaction_id)
    assert tx.provider == "paynet"
    assert tx.short_id == second.short_id
    assert len(tx.short_id) == 5


@pytest.mark.asyncio
async def test_concurrent_creation_yields_one_transaction(callbacks, provider_settings):
    class SlowStore(InMemoryPaymentStore):
        async def find_pending_transaction(self, user_id, plan_id):
            await asyncio.sleep(0.01)
            return await super().find_pending_transaction(user_id, plan_id)

    store = SlowStore()
    service = PaymentService(store, callbacks, settings=provider_settings)

    results = await asyncio.gather(*(service.create_payment(_request()) for _ in range(5)))
    assert len({r.transaction_id for r in results}) == 1
    assert len(store) == 1


@pytest.mark.asyncio
async def test_short_id_exhaustion(service, make_tx, monkeypatch):
    make_tx(short_id="11111", status=TransactionStatus.PREPARED)
    monkeypatch.setattr(payment_service_module, "generate_short_id", lambda: "11111")

    with pytest.raises(ShortIdGenerationException):
        await service.create_payment(_request(provider="click"))


@pytest.mark.asyncio
async def test_terminal_holder_frees_short_id(service, make_tx, monkeypatch):
    make_tx(short_id="22222", status=TransactionStatus.COMPLETED)
    monkeypatch.setattr(payment_service_module, "generate_short_id", lambda: "22222")

    created = await service.create_payment(_request(provider="click"))
    assert created.short_id == "22222"


@pytest.mark.asyncio
async def test_amount_below_one_minor_unit(service):
    with pytest.raises(DomainValidationException):
        await service.create_payment(_request(amount="0.001"))


@pytest.mark.asyncio
async def test_unconfigured_provider(store, callbacks):
    service = PaymentService(store, callbacks, settings=PaymentSettings())

    with pytest.raises(ProviderNotConfiguredException):
        await service.create_payment(_request())
    with pytest.raises(ProviderNotConfiguredException):
        await service.handle_click_webhook({})
    with pytest.raises(ProviderNotConfiguredException):
        await service.handle_paynet_webhook({}, {})


@pytest.mark.asyncio
async def test_webhook_headers_are_case_insensitive(service, make_tx, payme_auth):
    tx = make_tx()
    body = {"method": "CheckPerformTransaction", "id": 1, "params": {
        "amount": 5_000_000, "account": {"order_id": tx.id},
    }}

    result = await service.handle_payme_webhook({"AUTHORIZATION": payme_auth}, body)
    assert result.body["result"]["allow"] is True

    rejected = await service.handle_payme_webhook({}, body)
    assert rejected.body["error"]["code"] == -32504


class RacingShortIdStore(InMemoryPaymentStore):
    """Short-id lookups miss rows written by a concurrent process."""

    async def get_transaction_by_short_id(self, short_id):
        return None


@pytest.mark.asyncio
async def test_short_id_claimed_concurrently_is_regenerated(callbacks, provider_settings, monkeypatch):
    store = RacingShortIdStore()
    store.add(Transaction(
        id="other", user_id="user-2", plan_id="plan-9", provider="click",
        amount=100, status=TransactionStatus.PENDING, short_id="33333",
    ))
    candidates = iter(["33333", "44444"])
    monkeypatch.setattr(payment_service_module, "generate_short_id", lambda: next(candidates))

    service = PaymentService(store, callbacks, settings=provider_settings)
    created = await service.create_payment(_request(provider="click"))

    assert created.short_id == "44444"
    assert len(store) == 2


@pytest.mark.asyncio
async def test_short_id_claimed_on_reuse_is_regenerated(callbacks, provider_settings, monkeypatch):
    store = RacingShortIdStore()
    store.add(Transaction(
        id="other", user_id="user-2", plan_id="plan-9", provider="paynet",
        amount=100, status=TransactionStatus.PREPARED, short_id="33333",
    ))
    service = PaymentService(store, callbacks, settings=provider_settings)
    first = await service.create_payment(_request(provider="payme"))

    candidates = iter(["33333", "55555"])
    monkeypatch.setattr(payment_service_module, "generate_short_id", lambda: next(candidates))
    second = await service.create_payment(_request(provider="click"))

    assert second.transaction_id == first.transaction_id
    stored = await store.get_transaction_by_id(first.transaction_id)
    assert stored.short_id == "55555"
    assert stored.provider == "click"


@pytest.mark.asyncio
async def test_short_id_conflicts_are_bounded(callbacks, provider_settings, monkeypatch):
    store = RacingShortIdStore()
    store.add(Transaction(
        id="other", user_id="user-2", plan_id="plan-9", provider="click",
        amount=100, status=TransactionStatus.PENDING, short_id="33333",
    ))
    monkeypatch.setattr(payment_service_module, "generate_short_id", lambda: "33333")

    service = PaymentService(store, callbacks, settings=provider_settings)
    with pytest.raises(ShortIdGenerationException):
        await service.create_payment(_request(provider="click"))
    assert len(store) == 1
