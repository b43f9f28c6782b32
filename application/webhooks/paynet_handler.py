"""
Paynet JSON-RPC 2.0 webhook handler.

Paynet has no prepare step: GetInformation looks the order up by its short
id, PerformTransaction moves it straight from PENDING to COMPLETED.
"""
from __future__ import annotations

from typing import Any, Mapping, Optional

from pydantic import ValidationError

from application.dtos.payments import PaynetRequest, WebhookResult
from application.ports.payment_callbacks import PaymentCallbacks
from application.webhooks.dispatcher import ProtocolError, dispatch
from application.webhooks.params import as_int, dump_payload, nested, numeric_request_id, same_amount
from application.webhooks.transitions import cancel_transaction, complete_transaction
from core.logging_config import get_logger
from core.settings import PaynetSettings
from domain.payment.entity import CancelReason, PaymentProvider, Transaction, TransactionStatus
from domain.payment.repository import PaymentStore
from infrastructure.external.payments.paynet import PaynetProtocol, map_to_paynet_state, verify_paynet_auth
from shared.codes.payment_codes import PaynetErrorCode, PaynetState
from shared.utils.currency import to_major_rounded
from shared.utils.timefmt import now_ms, parse_range_bound, tashkent_check_timestamp, tashkent_timestamp


PROVIDER = PaymentProvider.PAYNET.value


def _client_id(params: Mapping[str, Any]) -> Optional[str]:
    fields = nested(params, "fields")
    value = fields.get("order_id") or fields.get("client_id")
    return str(value) if value not in (None, "") else None


class PaynetWebhookHandler:
    """Paynet endpoint: auth, envelope and service checks, method dispatch."""

    protocol = PaynetProtocol()

    def __init__(
        self,
        config: PaynetSettings,
        store: PaymentStore,
        callbacks: PaymentCallbacks,
        logger: Any = None,
    ) -> None:
        self.config = config
        self.store = store
        self.callbacks = callbacks
        self.logger = logger or get_logger(__name__)
        self._methods = {
            "GetInformation": self.get_information,
            "PerformTransaction": self.perform_transaction,
            "CheckTransaction": self.check_transaction,
            "CancelTransaction": self.cancel_transaction,
            "GetStatement": self.get_statement,
            "ChangePassword": self.change_password,
        }

    async def handle(self, authorization: Optional[str], body: Any) -> WebhookResult:
        if not verify_paynet_auth(self.config, authorization):
            self.logger.warning("paynet_auth_failed")
            return WebhookResult(status=401, body=self.protocol.error(0, PaynetErrorCode.ACCESS_DENIED))

        try:
            request = PaynetRequest.model_validate(body)
        except ValidationError:
            return WebhookResult(
                status=200,
                body=self.protocol.error(numeric_request_id(body), PaynetErrorCode.INVALID_RPC_REQUEST),
            )

        service_id = request.params.get("serviceId")
        if service_id not in (None, "") and str(service_id) != str(self.config.service_id):
            self.logger.warning("paynet_service_mismatch", service_id=str(service_id))
            return WebhookResult(
                status=200,
                body=self.protocol.error(request.id, PaynetErrorCode.SERVICE_NOT_FOUND),
            )

        response = await dispatch(
            self.protocol, self._methods, request.method, request.id, self.logger, request.params,
        )
        return WebhookResult(status=200, body=response)

    async def _by_paynet_id(self, params: Mapping[str, Any]) -> tuple[str, Optional[Transaction]]:
        paynet_id = params.get("transactionId")
        if paynet_id in (None, ""):
            raise ProtocolError(PaynetErrorCode.MISSING_PARAMS)
        paynet_id = str(paynet_id)
        return paynet_id, await self.store.get_transaction_by_provider_id(PROVIDER, paynet_id)

    # ------------------------------------------------------------------
    # methods
    # ------------------------------------------------------------------

    async def get_information(self, params: Mapping[str, Any]) -> dict[str, Any]:
        client_id = _client_id(params)
        if client_id is None:
            raise ProtocolError(PaynetErrorCode.MISSING_PARAMS)

        tx = await self.store.get_transaction_by_short_id(client_id)
        if tx is None or tx.status != TransactionStatus.PENDING:
            raise ProtocolError(PaynetErrorCode.CLIENT_NOT_FOUND)

        if tx.provider != PROVIDER:
            await self.store.update_transaction(tx.id, {"provider": PROVIDER})
            self.logger.info("paynet_provider_attached", transaction_id=tx.id, previous_provider=tx.provider)

        info = dump_payload(await self.callbacks.get_user_info(tx.user_id)) or {}
        return {
            "status": "0",
            "timestamp": tashkent_timestamp(),
            "fields": {
                **info,
                "name": info.get("name") or "User",
                "amount": to_major_rounded(tx.amount),
            },
        }

    async def perform_transaction(self, params: Mapping[str, Any]) -> dict[str, Any]:
        paynet_id = params.get("transactionId")
        amount = params.get("amount")
        client_id = _client_id(params)
        if paynet_id in (None, "") or amount is None or client_id is None:
            raise ProtocolError(PaynetErrorCode.MISSING_PARAMS)
        paynet_id = str(paynet_id)

        tx = await self.store.get_transaction_by_short_id(client_id)
        if tx is None:
            raise ProtocolError(PaynetErrorCode.CLIENT_NOT_FOUND)
        if not same_amount(amount, tx.amount):
            raise ProtocolError(PaynetErrorCode.INVALID_AMOUNT)
        if tx.status == TransactionStatus.COMPLETED:
            raise ProtocolError(PaynetErrorCode.TRANSACTION_EXISTS)
        if tx.status == TransactionStatus.FAILED:
            raise ProtocolError(PaynetErrorCode.TRANSACTION_CANCELLED)
        # another provider already holds this order
        if tx.provider_transaction_id and tx.provider_transaction_id != paynet_id:
            raise ProtocolError(PaynetErrorCode.TRANSACTION_EXISTS)

        await complete_transaction(
            self.store,
            self.callbacks,
            tx,
            {
                "provider_transaction_id": paynet_id,
                "provider_perform_time": now_ms(),
                "provider": PROVIDER,
            },
        )
        return {
            "providerTrnId": tx.id,
            "timestamp": tashkent_timestamp(),
            "fields": {"client_id": client_id},
        }

    async def check_transaction(self, params: Mapping[str, Any]) -> dict[str, Any]:
        _, tx = await self._by_paynet_id(params)
        if tx is None:
            return {
                "transactionState": int(PaynetState.NOT_FOUND),
                "timestamp": tashkent_check_timestamp(),
                "providerTrnId": 0,
            }
        return {
            "transactionState": int(map_to_paynet_state(tx.status)),
            "timestamp": tashkent_check_timestamp(),
            "providerTrnId": tx.id,
        }

    async def cancel_transaction(self, params: Mapping[str, Any]) -> dict[str, Any]:
        _, tx = await self._by_paynet_id(params)
        if tx is None:
            raise ProtocolError(PaynetErrorCode.TRANSACTION_NOT_FOUND)
        if tx.status == TransactionStatus.FAILED:
            raise ProtocolError(PaynetErrorCode.TRANSACTION_CANCELLED)

        changes: dict[str, Any] = {"provider_cancel_time": now_ms()}
        if tx.status == TransactionStatus.COMPLETED:
            changes["cancel_reason"] = int(CancelReason.REFUND)
        await cancel_transaction(self.store, self.callbacks, tx, changes)

        return {
            "providerTrnId": tx.id,
            "timestamp": tashkent_timestamp(),
            "transactionState": int(PaynetState.CANCELLED),
        }

    async def get_statement(self, params: Mapping[str, Any]) -> dict[str, Any]:
        date_from, date_to = params.get("dateFrom"), params.get("dateTo")
        if date_from in (None, "") or date_to in (None, ""):
            raise ProtocolError(PaynetErrorCode.INVALID_DATE_FORMAT)
        try:
            parse_range_bound(date_from)
            parse_range_bound(date_to)
        except ValueError:
            raise ProtocolError(PaynetErrorCode.INVALID_DATE_FORMAT)

        transactions = await self.store.get_transactions_by_date_range(PROVIDER, date_from, date_to)
        statements = [
            {
                "amount": to_major_rounded(tx.amount),
                "providerTrnId": tx.id,
                "transactionId": as_int(tx.provider_transaction_id) or 0,
                "timestamp": tashkent_timestamp(tx.updated_at or tx.created_at),
            }
            for tx in transactions
        ]
        return {"statements": statements}

    async def change_password(self, params: Mapping[str, Any]) -> dict[str, Any]:
        new_password = params.get("newPassword")
        if not new_password:
            raise ProtocolError(PaynetErrorCode.MISSING_PARAMS)
        await self.callbacks.on_password_change_requested(str(new_password))
        self.logger.info("paynet_password_change_requested")
        return {"result": "success"}


async def handle_paynet_webhook(
    config: PaynetSettings,
    store: PaymentStore,
    callbacks: PaymentCallbacks,
    authorization: Optional[str],
    body: Any,
    logger: Any = None,
) -> WebhookResult:
    """Handle one Paynet JSON-RPC request. 401 on bad credentials, else 200."""
    return await PaynetWebhookHandler(config, store, callbacks, logger).handle(authorization, body)
