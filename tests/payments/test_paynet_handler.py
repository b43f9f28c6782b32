from datetime import datetime, timedelta, timezone

import pytest

from application.dtos.payments import UserInfo
from application.webhooks.paynet_handler import handle_paynet_webhook
from domain.payment.entity import CancelReason, TransactionStatus
from infrastructure.external.payments.crypto import basic_credentials


def rpc(method, params=None, request_id=11):
    return {"jsonrpc": "2.0", "method": method, "params": params if params is not None else {}, "id": request_id}


@pytest.fixture
def call(store, callbacks, paynet_config, paynet_auth):
    async def _call(body, authorization=paynet_auth):
        return await handle_paynet_webhook(paynet_config, store, callbacks, authorization, body)
    return _call


@pytest.mark.asyncio
async def test_wrong_credentials_answer_401(call):
    result = await call(rpc("GetInformation"), basic_credentials("paynet", "wrong"))
    assert result.status == 401
    assert result.body == {"jsonrpc": "2.0", "id": 0, "error": {"code": 601, "message": "Доступ запрещен"}}


@pytest.mark.asyncio
async def test_envelope_service_and_method_checks(call):
    invalid = await call({"jsonrpc": "2.0", "method": "GetInformation", "id": 5})
    assert invalid.status == 200
    assert invalid.body["error"]["code"] == -32600
    assert invalid.body["id"] == 5

    wrong_service = await call(rpc("GetInformation", {"serviceId": 1}))
    assert wrong_service.body["error"]["code"] == 305

    unknown = await call(rpc("Refund", {}))
    assert unknown.body["error"] == {"code": -32601, "message": "Метод Refund не найден"}


@pytest.mark.asyncio
async def test_get_information_returns_display_fields(call, store, callbacks, make_tx):
    tx = make_tx(provider="click", short_id="31337", amount=5_000_050)
    callbacks.user_info = UserInfo(name="Aziz", phone="998901234567")

    result = await call(rpc("GetInformation", {"serviceId": 77, "fields": {"client_id": "31337"}}))
    body = result.body["result"]
    assert body["status"] == "0"
    assert body["fields"] == {"name": "Aziz", "phone": "998901234567", "amount": 50001}
    assert (await store.get_transaction_by_id(tx.id)).provider == "paynet"


@pytest.mark.asyncio
async def test_get_information_defaults_and_rejections(call, make_tx):
    make_tx(provider="paynet", short_id="40001")
    result = await call(rpc("GetInformation", {"fields": {"order_id": "40001"}}))
    assert result.body["result"]["fields"]["name"] == "User"

    make_tx(provider="paynet", short_id="40002", status=TransactionStatus.COMPLETED)
    hidden = await call(rpc("GetInformation", {"fields": {"order_id": "40002"}}))
    assert hidden.body["error"]["code"] == 302

    missing = await call(rpc("GetInformation", {"fields": {}}))
    assert missing.body["error"]["code"] == -32602


@pytest.mark.asyncio
async def test_perform_completes_pending_transaction(call, store, callbacks, make_tx):
    tx = make_tx(provider="paynet", short_id="50001")
    params = {"transactionId": 9001, "amount": 5_000_000, "fields": {"client_id": "50001"}}

    result = await call(rpc("PerformTransaction", params))
    assert result.body["result"]["providerTrnId"] == tx.id
    assert result.body["result"]["fields"] == {"client_id": "50001"}
    assert len(callbacks.completed) == 1

    stored = await store.get_transaction_by_id(tx.id)
    assert stored.status == TransactionStatus.COMPLETED
    assert stored.provider_transaction_id == "9001"

    replay = await call(rpc("PerformTransaction", params))
    assert replay.body["error"]["code"] == 201
    assert len(callbacks.completed) == 1


@pytest.mark.asyncio
async def test_perform_rejections(call, make_tx):
    make_tx(provider="paynet", short_id="50002")
    off_by_one = await call(rpc("PerformTransaction", {
        "transactionId": 1, "amount": 5_000_001, "fields": {"client_id": "50002"},
    }))
    assert off_by_one.body["error"]["code"] == 413

    make_tx(provider="paynet", short_id="50003", status=TransactionStatus.FAILED)
    cancelled = await call(rpc("PerformTransaction", {
        "transactionId": 2, "amount": 5_000_000, "fields": {"client_id": "50003"},
    }))
    assert cancelled.body["error"]["code"] == 202

    unknown = await call(rpc("PerformTransaction", {
        "transactionId": 3, "amount": 5_000_000, "fields": {"client_id": "99999"},
    }))
    assert unknown.body["error"]["code"] == 302

    missing = await call(rpc("PerformTransaction", {"amount": 5_000_000, "fields": {"client_id": "50002"}}))
    assert missing.body["error"]["code"] == -32602


@pytest.mark.asyncio
async def test_perform_refuses_order_held_by_another_provider(call, callbacks, make_tx):
    make_tx(
        provider="click", short_id="50004",
        status=TransactionStatus.PREPARED, provider_transaction_id="click-1",
    )
    result = await call(rpc("PerformTransaction", {
        "transactionId": 4, "amount": 5_000_000, "fields": {"client_id": "50004"},
    }))
    assert result.body["error"]["code"] == 201
    assert callbacks.completed == []


@pytest.mark.asyncio
async def test_check_unknown_transaction_is_not_an_error(call):
    result = await call(rpc("CheckTransaction", {"transactionId": 123456}))
    assert result.status == 200
    assert "error" not in result.body
    assert result.body["result"]["transactionState"] == 3
    assert result.body["result"]["providerTrnId"] == 0
    assert " UZT " in result.body["result"]["timestamp"]


@pytest.mark.asyncio
async def test_check_known_transaction(call, make_tx):
    tx = make_tx(provider="paynet", status=TransactionStatus.COMPLETED, provider_transaction_id="777")
    result = await call(rpc("CheckTransaction", {"transactionId": 777}))
    assert result.body["result"]["transactionState"] == 1
    assert result.body["result"]["providerTrnId"] == tx.id


@pytest.mark.asyncio
async def test_cancel_completed_transaction(call, store, callbacks, make_tx):
    tx = make_tx(provider="paynet", status=TransactionStatus.COMPLETED, provider_transaction_id="888")

    result = await call(rpc("CancelTransaction", {"transactionId": "888"}))
    assert result.body["result"]["transactionState"] == 2
    assert result.body["result"]["providerTrnId"] == tx.id
    assert len(callbacks.cancelled) == 1

    stored = await store.get_transaction_by_id(tx.id)
    assert stored.status == TransactionStatus.FAILED
    assert stored.cancel_reason == CancelReason.REFUND

    again = await call(rpc("CancelTransaction", {"transactionId": "888"}))
    assert again.body["error"]["code"] == 202
    assert len(callbacks.cancelled) == 1

    unknown = await call(rpc("CancelTransaction", {"transactionId": "0000"}))
    assert unknown.body["error"]["code"] == 203


@pytest.mark.asyncio
async def test_get_statement(call, make_tx):
    now = datetime.now(timezone.utc)
    tx = make_tx(provider="paynet", status=TransactionStatus.COMPLETED, provider_transaction_id="9001", amount=1_234_550)
    make_tx(provider="paynet", created_at=now - timedelta(days=3))

    date_from = (now - timedelta(hours=1)).isoformat()
    date_to = (now + timedelta(hours=1)).isoformat()
    result = await call(rpc("GetStatement", {"dateFrom": date_from, "dateTo": date_to}))

    statements = result.body["result"]["statements"]
    assert len(statements) == 1
    assert statements[0]["providerTrnId"] == tx.id
    assert statements[0]["transactionId"] == 9001
    assert statements[0]["amount"] == 12346

    missing = await call(rpc("GetStatement", {"dateFrom": date_from}))
    assert missing.body["error"]["code"] == 414

    garbage = await call(rpc("GetStatement", {"dateFrom": "yesterday", "dateTo": date_to}))
    assert garbage.body["error"]["code"] == 414


@pytest.mark.asyncio
async def test_change_password(call, callbacks):
    result = await call(rpc("ChangePassword", {"newPassword": "n3w"}))
    assert result.body["result"] == {"result": "success"}
    assert callbacks.password_changes == ["n3w"]

    missing = await call(rpc("ChangePassword", {}))
    assert missing.body["error"]["code"] == -32602


@pytest.mark.asyncio
async def test_cancel_keeps_completed_status_when_revoke_fails(call, store, callbacks, make_tx):
    tx = make_tx(provider="paynet", status=TransactionStatus.COMPLETED, provider_transaction_id="889")
    callbacks.fail_cancellation = True

    result = await call(rpc("CancelTransaction", {"transactionId": "889"}))
    assert result.body["error"]["code"] == -32603
    assert result.body["id"] == 11

    stored = await store.get_transaction_by_id(tx.id)
    assert stored.status == TransactionStatus.COMPLETED
    assert stored.cancel_reason is None
