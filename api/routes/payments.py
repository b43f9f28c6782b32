"""
Payments API routes.

Provider webhooks plus a creation endpoint for the host application. Keep
this thin: parsing the transport and turning WebhookResult into a response is
all that happens here.
"""
from __future__ import annotations

import json
from typing import Any
from urllib.parse import parse_qsl

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse

from api.dependencies import get_payment_service
from application.dtos.payments import CreatePayment, WebhookResult
from application.services.payment_service import PaymentService
from core.logging_config import get_logger
from core.response import success_response


router = APIRouter(prefix="/payments", tags=["Payments"])
logger = get_logger(__name__)


async def _json_body(request: Request) -> Any:
    """Parsed JSON body, or None when it is missing or malformed."""
    raw = await request.body()
    if not raw:
        return None
    try:
        return json.loads(raw)
    except ValueError:
        logger.info("webhook_body_unparseable", path=request.url.path, size=len(raw))
        return None


async def _click_body(request: Request) -> Any:
    """Click posts form-urlencoded by default; JSON is accepted as well."""
    content_type = (request.headers.get("content-type") or "").lower()
    if "application/json" in content_type:
        return await _json_body(request)
    raw = await request.body()
    return dict(parse_qsl(raw.decode("utf-8", errors="replace"), keep_blank_values=True))


def _respond(result: WebhookResult) -> JSONResponse:
    return JSONResponse(status_code=result.status, content=result.body)


@router.post("/webhooks/payme", summary="Payme Merchant API webhook")
async def payme_webhook(request: Request, service: PaymentService = Depends(get_payment_service)):
    result = await service.handle_payme_webhook(request.headers, await _json_body(request))
    return _respond(result)


@router.post("/webhooks/click", summary="Click Prepare/Complete webhook")
async def click_webhook(request: Request, service: PaymentService = Depends(get_payment_service)):
    result = await service.handle_click_webhook(await _click_body(request))
    return _respond(result)


@router.post("/webhooks/paynet", summary="Paynet JSON-RPC webhook")
async def paynet_webhook(request: Request, service: PaymentService = Depends(get_payment_service)):
    result = await service.handle_paynet_webhook(request.headers, await _json_body(request))
    return _respond(result)


@router.post("", summary="Create or reuse a pending payment")
async def create_payment(payload: CreatePayment, service: PaymentService = Depends(get_payment_service)):
    created = await service.create_payment(payload)
    return success_response(data=created.model_dump(mode="json"), message="Payment created")
