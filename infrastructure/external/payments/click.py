"""
Click Prepare/Complete codec: MD5 sign check and flat response envelopes.

Every response is HTTP 200 with an ``error`` code (0 on success) and an
``error_note``; success bodies also echo the ids Click needs.
"""
from __future__ import annotations

from typing import Any, Mapping, Optional

from application.webhooks.dispatcher import WebhookProtocol
from infrastructure.external.payments.crypto import constant_time_equals, md5_hex
from shared.codes.payment_codes import CLICK_ERROR_NOTES, ClickAction, ClickErrorCode


class ClickProtocol(WebhookProtocol):
    provider = "click"
    method_not_found = ClickErrorCode.ACTION_NOT_FOUND
    internal_error = ClickErrorCode.INTERNAL_ERROR

    def success(self, request_id: Any, result: Mapping[str, Any]) -> dict[str, Any]:
        return {
            **result,
            "error": int(ClickErrorCode.SUCCESS),
            "error_note": CLICK_ERROR_NOTES[ClickErrorCode.SUCCESS],
        }

    def error(self, request_id: Any, code: int, data: Optional[str] = None) -> dict[str, Any]:
        code = ClickErrorCode(code)
        return {"error": int(code), "error_note": CLICK_ERROR_NOTES[code]}


def _sign_part(value: Any) -> str:
    """Render a field the way Click concatenates it (``50000.0`` -> ``50000``)."""
    if value is None:
        return ""
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value)


def build_sign_source(secret_key: str, data: Mapping[str, Any]) -> str:
    """click_trans_id + service_id + secret + merchant_trans_id
    + (merchant_prepare_id on complete) + amount + action + sign_time
    """
    action = _sign_part(data.get("action"))
    prepare_id = _sign_part(data.get("merchant_prepare_id")) if action == str(int(ClickAction.COMPLETE)) else ""
    return "".join((
        _sign_part(data.get("click_trans_id")),
        _sign_part(data.get("service_id")),
        secret_key,
        _sign_part(data.get("merchant_trans_id")),
        prepare_id,
        _sign_part(data.get("amount")),
        action,
        _sign_part(data.get("sign_time")),
    ))


def sign_click_request(secret_key: str, data: Mapping[str, Any]) -> str:
    return md5_hex(build_sign_source(secret_key, data))


def verify_click_signature(secret_key: str, data: Mapping[str, Any]) -> bool:
    sign_string = data.get("sign_string")
    if not isinstance(sign_string, str):
        return False
    return constant_time_equals(sign_click_request(secret_key, data), sign_string.lower())
