import httpx
import pytest
import pytest_asyncio

from core.settings import PaymentSettings
from infrastructure.external.payments.crypto import basic_credentials
from main import create_app


API = "/api/v1/payments"


@pytest_asyncio.fixture
async def client(store, callbacks, provider_settings):
    app = create_app(store=store, callbacks=callbacks, provider_settings=provider_settings)
    async with app.router.lifespan_context(app):
        transport = httpx.ASGITransport(app=app)
        async with httpx.AsyncClient(transport=transport, base_url="http://test") as ac:
            yield ac


@pytest.mark.asyncio
async def test_health(client):
    response = await client.get("/health")
    assert response.status_code == 200
    assert response.json()["data"] == {"status": "healthy"}
    assert response.headers["X-Request-ID"]


@pytest.mark.asyncio
async def test_request_id_is_echoed(client):
    response = await client.get("/health", headers={"X-Request-ID": "trace-123"})
    assert response.headers["X-Request-ID"] == "trace-123"


@pytest.mark.asyncio
async def test_payme_unauthorized_is_http_200(client):
    response = await client.post(f"{API}/webhooks/payme", json={"method": "CheckTransaction", "params": {}, "id": 9})
    assert response.status_code == 200
    assert response.json()["error"]["code"] == -32504


@pytest.mark.asyncio
async def test_payme_invalid_json(client, payme_auth):
    response = await client.post(
        f"{API}/webhooks/payme",
        content=b"{not json",
        headers={"Authorization": payme_auth, "Content-Type": "application/json"},
    )
    assert response.status_code == 200
    assert response.json()["id"] == 0
    assert response.json()["error"]["code"] == -32600


@pytest.mark.asyncio
async def test_paynet_unauthorized_is_http_401(client):
    response = await client.post(
        f"{API}/webhooks/paynet",
        json={"jsonrpc": "2.0", "method": "GetInformation", "params": {}, "id": 1},
        headers={"Authorization": basic_credentials("paynet", "wrong")},
    )
    assert response.status_code == 401
    assert response.json()["error"]["code"] == 601


@pytest.mark.asyncio
async def test_create_then_click_prepare_over_form(client, store, click_request):
    created = await client.post(API, json={
        "provider": "click", "user_id": "user-7", "plan_id": "premium", "amount": "50000",
    })
    assert created.status_code == 200
    data = created.json()["data"]
    assert data["amount"] == 5_000_000
    assert len(data["short_id"]) == 5

    form = {key: str(value) for key, value in click_request(0, data["short_id"], 50000).items()}
    response = await client.post(f"{API}/webhooks/click", data=form)
    assert response.status_code == 200
    body = response.json()
    assert body["error"] == 0
    assert body["merchant_prepare_id"] == data["transaction_id"]


@pytest.mark.asyncio
async def test_create_validation_error(client):
    response = await client.post(API, json={"provider": "stripe", "user_id": "u", "plan_id": "p", "amount": 1})
    assert response.status_code == 422
    assert response.json()["error"]["type"] == "ValidationError"


@pytest.mark.asyncio
async def test_unconfigured_provider_is_503(store, callbacks):
    app = create_app(store=store, callbacks=callbacks, provider_settings=PaymentSettings())
    async with app.router.lifespan_context(app):
        transport = httpx.ASGITransport(app=app)
        async with httpx.AsyncClient(transport=transport, base_url="http://test") as ac:
            response = await ac.post(f"{API}/webhooks/click", data={"click_trans_id": "1"})
    assert response.status_code == 503
    assert response.json()["error"]["type"] == "ProviderNotConfigured"
