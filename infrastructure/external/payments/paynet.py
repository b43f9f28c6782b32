"""
Paynet JSON-RPC 2.0 codec: Basic auth check, envelopes, state mapping.

Authentication failure is the only non-200 answer (401).
"""
from __future__ import annotations

from typing import Any, Mapping, Optional

from application.webhooks.dispatcher import WebhookProtocol
from core.settings import PaynetSettings
from domain.payment.entity import TransactionStatus
from infrastructure.external.payments.crypto import constant_time_equals, parse_basic_credentials
from shared.codes.payment_codes import PAYNET_ERROR_MESSAGES, PaynetErrorCode, PaynetState


class PaynetProtocol(WebhookProtocol):
    provider = "paynet"
    method_not_found = PaynetErrorCode.METHOD_NOT_FOUND
    internal_error = PaynetErrorCode.INTERNAL_ERROR

    def success(self, request_id: Any, result: Mapping[str, Any]) -> dict[str, Any]:
        return {"jsonrpc": "2.0", "id": request_id, "result": dict(result)}

    def error(self, request_id: Any, code: int, data: Optional[str] = None) -> dict[str, Any]:
        code = PaynetErrorCode(code)
        template = PAYNET_ERROR_MESSAGES.get(code, code.name)
        message = template.format(data=data or "") if "{data}" in template else template
        return {"jsonrpc": "2.0", "id": request_id, "error": {"code": int(code), "message": message}}


def verify_paynet_auth(config: PaynetSettings, authorization: Optional[str]) -> bool:
    credentials = parse_basic_credentials(authorization)
    if credentials is None:
        return False
    username, password = credentials
    username_ok = constant_time_equals(username, config.username)
    password_ok = constant_time_equals(password, config.password)
    return username_ok & password_ok


def map_to_paynet_state(status: Optional[TransactionStatus]) -> PaynetState:
    """Map the internal status to a Paynet transaction state.

    PENDING/PREPARED are reported as SUCCESS: Paynet treats them as in progress.
    """
    if status in (TransactionStatus.COMPLETED, TransactionStatus.PENDING, TransactionStatus.PREPARED):
        return PaynetState.SUCCESS
    if status == TransactionStatus.FAILED:
        return PaynetState.CANCELLED
    return PaynetState.NOT_FOUND
