import pytest

from application.webhooks.click_handler import handle_click_webhook
from application.webhooks.payme_handler import handle_payme_webhook
from domain.payment.entity import TransactionStatus
from shared.utils.timefmt import now_ms


PREPARE, COMPLETE = 0, 1


@pytest.fixture
def call(store, callbacks, click_config):
    async def _call(body):
        return await handle_click_webhook(click_config, store, callbacks, body)
    return _call


@pytest.mark.asyncio
async def test_prepare_converts_major_amount(call, store, make_tx, click_request):
    tx = make_tx(provider="click")
    result = await call(click_request(PREPARE, tx.id, 50000))

    assert result.status == 200
    assert result.body == {
        "click_trans_id": 555001,
        "merchant_trans_id": tx.id,
        "merchant_prepare_id": tx.id,
        "error": 0,
        "error_note": "Success",
    }
    stored = await store.get_transaction_by_id(tx.id)
    assert stored.status == TransactionStatus.PREPARED
    assert stored.provider_transaction_id == "555001"
    assert stored.provider == "click"


@pytest.mark.asyncio
async def test_prepare_resolves_short_id(call, make_tx, click_request):
    tx = make_tx(provider="click", short_id="48213")
    result = await call(click_request(PREPARE, "48213", "50000.00"))
    assert result.body["error"] == 0
    assert result.body["merchant_prepare_id"] == tx.id


@pytest.mark.asyncio
async def test_amount_tolerance_is_one_minor_unit(call, make_tx, click_request):
    tx = make_tx(provider="click")
    within = await call(click_request(PREPARE, tx.id, "50000.01"))
    assert within.body["error"] == 0

    other = make_tx(provider="click")
    outside = await call(click_request(PREPARE, other.id, "50000.02"))
    assert outside.body == {"error": -2, "error_note": "Incorrect parameter amount"}

    garbage = await call(click_request(PREPARE, other.id, "fifty"))
    assert garbage.body["error"] == -2


@pytest.mark.asyncio
async def test_request_shape_and_signature(call, make_tx, click_request):
    assert (await call(None)).body["error"] == -8
    assert (await call({"merchant_trans_id": "x"})).body["error"] == -8

    tx = make_tx(provider="click")
    tampered = click_request(PREPARE, tx.id, 50000)
    tampered["amount"] = 1
    result = await call(tampered)
    assert result.body == {"error": -1, "error_note": "SIGN CHECK FAILED"}


@pytest.mark.asyncio
async def test_unknown_order_and_action(call, make_tx, click_request):
    assert (await call(click_request(PREPARE, "no-such-order", 50000))).body["error"] == -5

    tx = make_tx(provider="click")
    assert (await call(click_request(7, tx.id, 50000))).body["error"] == -3


@pytest.mark.asyncio
async def test_complete_grants_once(call, store, callbacks, make_tx, click_request):
    tx = make_tx(provider="click")
    await call(click_request(PREPARE, tx.id, 50000))

    body = click_request(COMPLETE, tx.id, 50000, merchant_prepare_id=tx.id)
    first = await call(body)
    assert first.body == {
        "click_trans_id": 555001,
        "merchant_trans_id": tx.id,
        "merchant_confirm_id": tx.id,
        "error": 0,
        "error_note": "Success",
    }
    second = await call(body)
    assert second.body == first.body

    assert len(callbacks.completed) == 1
    stored = await store.get_transaction_by_id(tx.id)
    assert stored.status == TransactionStatus.COMPLETED
    assert stored.provider_perform_time is not None


@pytest.mark.asyncio
async def test_complete_requires_matching_prepare_id(call, make_tx, click_request):
    tx = make_tx(provider="click")
    await call(click_request(PREPARE, tx.id, 50000))
    result = await call(click_request(COMPLETE, tx.id, 50000, merchant_prepare_id="something-else"))
    assert result.body["error"] == -6


@pytest.mark.asyncio
async def test_complete_keeps_status_when_callback_fails(call, store, callbacks, make_tx, click_request):
    tx = make_tx(provider="click")
    await call(click_request(PREPARE, tx.id, 50000))
    callbacks.fail_completion = True

    result = await call(click_request(COMPLETE, tx.id, 50000, merchant_prepare_id=tx.id))
    assert result.body == {"error": -7, "error_note": "Internal system error"}
    assert (await store.get_transaction_by_id(tx.id)).status == TransactionStatus.PREPARED


@pytest.mark.asyncio
async def test_state_conflicts(call, make_tx, click_request):
    paid = make_tx(provider="click", status=TransactionStatus.COMPLETED, provider_transaction_id="555001")
    assert (await call(click_request(PREPARE, paid.id, 50000))).body["error"] == -4

    cancelled = make_tx(provider="click", status=TransactionStatus.FAILED)
    assert (await call(click_request(PREPARE, cancelled.id, 50000))).body["error"] == -9
    result = await call(click_request(COMPLETE, cancelled.id, 50000, merchant_prepare_id=cancelled.id))
    assert result.body["error"] == -9


@pytest.mark.asyncio
async def test_provider_error_forces_failure(call, store, callbacks, make_tx, click_request):
    tx = make_tx(provider="click")
    await call(click_request(PREPARE, tx.id, 50000))

    result = await call(click_request(COMPLETE, tx.id, 50000, merchant_prepare_id=tx.id, error=-5017))
    assert result.body == {"error": -9, "error_note": "Transaction cancelled"}

    stored = await store.get_transaction_by_id(tx.id)
    assert stored.status == TransactionStatus.FAILED
    assert stored.provider_cancel_time is not None
    assert callbacks.completed == []
    assert callbacks.cancelled == []


@pytest.mark.asyncio
async def test_provider_error_on_completed_revokes(call, store, callbacks, make_tx, click_request):
    tx = make_tx(provider="click", status=TransactionStatus.COMPLETED, provider_transaction_id="555001")

    result = await call(click_request(COMPLETE, tx.id, 50000, merchant_prepare_id=tx.id, error=-1))
    assert result.body["error"] == -9
    assert len(callbacks.cancelled) == 1
    assert (await store.get_transaction_by_id(tx.id)).status == TransactionStatus.FAILED

    again = await call(click_request(COMPLETE, tx.id, 50000, merchant_prepare_id=tx.id, error=-1))
    assert again.body["error"] == -9
    assert len(callbacks.cancelled) == 1


@pytest.mark.asyncio
async def test_action_is_checked_after_order_and_amount(call, make_tx, click_request):
    assert (await call(click_request(7, "no-such-order", 50000))).body["error"] == -5

    tx = make_tx(provider="click")
    assert (await call(click_request(7, tx.id, 1))).body["error"] == -2


@pytest.mark.asyncio
async def test_prepare_does_not_take_over_payme_order(
    call, store, callbacks, make_tx, click_request, payme_config, payme_auth,
):
    tx = make_tx(status=TransactionStatus.PREPARED, provider_transaction_id="pm-1", provider_create_time=now_ms())

    result = await call(click_request(PREPARE, tx.id, 50000))
    assert result.body == {"error": -4, "error_note": "Already paid"}

    stored = await store.get_transaction_by_id(tx.id)
    assert stored.provider == "payme"
    assert stored.provider_transaction_id == "pm-1"
    assert stored.status == TransactionStatus.PREPARED

    perform = await handle_payme_webhook(
        payme_config, store, callbacks, payme_auth,
        {"method": "PerformTransaction", "params": {"id": "pm-1"}, "id": 1},
    )
    assert perform.body["result"]["state"] == 2


@pytest.mark.asyncio
async def test_complete_and_failure_leave_foreign_order_alone(call, store, callbacks, make_tx, click_request):
    tx = make_tx(status=TransactionStatus.PREPARED, provider_transaction_id="pm-1", provider_create_time=now_ms())

    complete = await call(click_request(COMPLETE, tx.id, 50000, merchant_prepare_id=tx.id))
    assert complete.body["error"] == -4
    failure = await call(click_request(COMPLETE, tx.id, 50000, merchant_prepare_id=tx.id, error=-1))
    assert failure.body["error"] == -4

    assert callbacks.completed == []
    stored = await store.get_transaction_by_id(tx.id)
    assert stored.status == TransactionStatus.PREPARED
    assert stored.provider_transaction_id == "pm-1"


@pytest.mark.asyncio
async def test_prepare_with_other_click_id_is_rejected(call, store, make_tx, click_request):
    tx = make_tx(provider="click")
    await call(click_request(PREPARE, tx.id, 50000))

    again = await call(click_request(PREPARE, tx.id, 50000))
    assert again.body["error"] == 0

    other = await call(click_request(PREPARE, tx.id, 50000, click_trans_id=555002))
    assert other.body["error"] == -4
    assert (await store.get_transaction_by_id(tx.id)).provider_transaction_id == "555001"
