"""
Payme Merchant API codec: Basic auth check, JSON-RPC envelopes, state mapping.

Request:  {"method": ..., "params": {...}, "id": <number>}
Response: {"result": {...}, "id": ...} or
          {"error": {"code": ..., "message": {"ru", "uz", "en"}, "data"?: ...}, "id": ...}
Payme always expects HTTP 200.
"""
from __future__ import annotations

from typing import Any, Mapping, Optional

from application.webhooks.dispatcher import WebhookProtocol
from core.settings import PaymeSettings
from domain.payment.entity import TransactionStatus
from infrastructure.external.payments.crypto import constant_time_equals, parse_basic_credentials
from shared.codes.payment_codes import (
    PAYME_ERROR_DATA,
    PAYME_ERROR_MESSAGES,
    PaymeErrorCode,
    PaymeState,
)


class PaymeProtocol(WebhookProtocol):
    provider = "payme"
    method_not_found = PaymeErrorCode.METHOD_NOT_FOUND
    internal_error = PaymeErrorCode.INTERNAL_ERROR

    def success(self, request_id: Any, result: Mapping[str, Any]) -> dict[str, Any]:
        return {"result": dict(result), "id": request_id}

    def error(self, request_id: Any, code: int, data: Optional[str] = None) -> dict[str, Any]:
        code = PaymeErrorCode(code)
        error: dict[str, Any] = {
            "code": int(code),
            "message": dict(PAYME_ERROR_MESSAGES[code]),
        }
        data = data if data is not None else PAYME_ERROR_DATA.get(code)
        if data:
            error["data"] = data
        return {"error": error, "id": request_id}


def verify_payme_auth(config: PaymeSettings, authorization: Optional[str]) -> bool:
    """Payme sends ``Basic base64(Paycom:<secret key>)``."""
    credentials = parse_basic_credentials(authorization)
    if credentials is None:
        return False
    login, secret = credentials
    # evaluate both comparisons so timing does not reveal which part was wrong
    login_ok = constant_time_equals(login, config.login)
    secret_ok = constant_time_equals(secret, config.secret_key)
    return login_ok & secret_ok


def map_to_payme_state(status: TransactionStatus, has_perform_time: bool = False) -> PaymeState:
    """Map the internal status to a Payme transaction state."""
    if status == TransactionStatus.COMPLETED:
        return PaymeState.COMPLETED
    if status == TransactionStatus.FAILED:
        if has_perform_time:
            return PaymeState.CANCELLED_AFTER_COMPLETE
        return PaymeState.CANCELLED_BEFORE_COMPLETE
    return PaymeState.CREATED
