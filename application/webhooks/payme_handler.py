"""
Payme Merchant API webhook handler.

State machine per Payme transaction (``params.id``):

    CreateTransaction    PENDING  -> PREPARED   (state 1)
    PerformTransaction   PREPARED -> COMPLETED  (state 2, grants entitlement)
    CancelTransaction    PENDING/PREPARED -> FAILED   (state -1)
                         COMPLETED -> FAILED          (state -2, revokes entitlement)

Every method is idempotent per Payme id: replays answer from stored data and
never call a callback twice.
"""
from __future__ import annotations

from typing import Any, Mapping, Optional

from pydantic import ValidationError

from application.dtos.payments import PaymeRequest, WebhookResult
from application.ports.payment_callbacks import PaymentCallbacks
from application.webhooks.dispatcher import ProtocolError, dispatch
from application.webhooks.params import as_int, dump_payload, nested, numeric_request_id, same_amount
from application.webhooks.transitions import apply_transition, cancel_transaction, complete_transaction
from core.logging_config import get_logger
from core.settings import PaymeSettings
from domain.payment.entity import CancelReason, PaymentProvider, Transaction, TransactionStatus
from domain.payment.repository import PaymentStore
from infrastructure.external.payments.payme import PaymeProtocol, map_to_payme_state, verify_payme_auth
from shared.codes.payment_codes import PaymeErrorCode, PaymeState
from shared.utils.timefmt import now_ms, to_epoch_ms


PROVIDER = PaymentProvider.PAYME.value


def _ms(dt) -> int:
    return to_epoch_ms(dt) if dt is not None else 0


def describe_transaction(tx: Transaction) -> dict[str, Any]:
    """Times, state and reason as reported by CheckTransaction and GetStatement."""
    last_change = tx.updated_at or tx.created_at
    create_time = tx.provider_create_time or _ms(tx.created_at)
    perform_time = tx.provider_perform_time or (
        _ms(last_change) if tx.status == TransactionStatus.COMPLETED else 0
    )
    cancel_time = tx.provider_cancel_time or (
        _ms(last_change) if tx.status == TransactionStatus.FAILED else 0
    )
    state = map_to_payme_state(tx.status, bool(tx.provider_perform_time))

    reason: Optional[int] = None
    if state == PaymeState.CANCELLED_AFTER_COMPLETE:
        reason = int(CancelReason.REFUND)
    elif state == PaymeState.CANCELLED_BEFORE_COMPLETE:
        reason = tx.cancel_reason or int(CancelReason.TRANSACTION_ERROR)

    return {
        "create_time": create_time,
        "perform_time": perform_time,
        "cancel_time": cancel_time,
        "transaction": tx.id,
        "state": int(state),
        "reason": reason,
    }


class PaymeWebhookHandler:
    """Payme JSON-RPC endpoint: auth, envelope validation, method dispatch."""

    protocol = PaymeProtocol()

    def __init__(
        self,
        config: PaymeSettings,
        store: PaymentStore,
        callbacks: PaymentCallbacks,
        logger: Any = None,
    ) -> None:
        self.config = config
        self.store = store
        self.callbacks = callbacks
        self.logger = logger or get_logger(__name__)
        self._methods = {
            "CheckPerformTransaction": self.check_perform_transaction,
            "CreateTransaction": self.create_transaction,
            "PerformTransaction": self.perform_transaction,
            "CancelTransaction": self.cancel_transaction,
            "CheckTransaction": self.check_transaction,
            "GetStatement": self.get_statement,
        }

    async def handle(self, authorization: Optional[str], body: Any) -> WebhookResult:
        if not verify_payme_auth(self.config, authorization):
            self.logger.warning("payme_auth_failed")
            return WebhookResult(
                status=200,
                body=self.protocol.error(0, PaymeErrorCode.INSUFFICIENT_PRIVILEGES),
            )

        try:
            request = PaymeRequest.model_validate(body)
        except ValidationError:
            return WebhookResult(
                status=200,
                body=self.protocol.error(numeric_request_id(body), PaymeErrorCode.INVALID_RPC_REQUEST),
            )

        response = await dispatch(
            self.protocol, self._methods, request.method, request.id, self.logger, request.params,
        )
        return WebhookResult(status=200, body=response)

    # ------------------------------------------------------------------
    # lookups
    # ------------------------------------------------------------------

    async def _order(self, params: Mapping[str, Any]) -> Transaction:
        order_id = nested(params, "account").get("order_id")
        if not order_id:
            raise ProtocolError(PaymeErrorCode.ORDER_NOT_FOUND)
        tx = await self.store.get_transaction_by_id(str(order_id))
        if tx is None:
            raise ProtocolError(PaymeErrorCode.ORDER_NOT_FOUND)
        return tx

    async def _by_payme_id(self, params: Mapping[str, Any]) -> tuple[str, Transaction]:
        payme_id = params.get("id")
        if not payme_id:
            raise ProtocolError(PaymeErrorCode.TRANSACTION_NOT_FOUND)
        tx = await self.store.get_transaction_by_provider_id(PROVIDER, str(payme_id))
        if tx is None:
            raise ProtocolError(PaymeErrorCode.TRANSACTION_NOT_FOUND)
        return str(payme_id), tx

    def _prepare_expired(self, tx: Transaction) -> bool:
        if tx.provider_create_time is None:
            return False
        return now_ms() - tx.provider_create_time > self.config.prepare_timeout_ms

    # ------------------------------------------------------------------
    # methods
    # ------------------------------------------------------------------

    async def check_perform_transaction(self, params: Mapping[str, Any]) -> dict[str, Any]:
        tx = await self._order(params)
        if not same_amount(params.get("amount"), tx.amount):
            raise ProtocolError(PaymeErrorCode.INVALID_AMOUNT)
        if tx.status == TransactionStatus.FAILED:
            raise ProtocolError(PaymeErrorCode.CANNOT_PERFORM_OPERATION)

        result: dict[str, Any] = {"allow": True}
        detail = dump_payload(await self.callbacks.get_fiscal_data(tx))
        if detail:
            result["detail"] = detail
        return result

    async def create_transaction(self, params: Mapping[str, Any]) -> dict[str, Any]:
        payme_id = params.get("id")
        create_time = as_int(params.get("time"))
        if not payme_id or create_time is None or params.get("amount") is None:
            raise ProtocolError(PaymeErrorCode.ORDER_NOT_FOUND)
        payme_id = str(payme_id)

        tx = await self._order(params)
        if not same_amount(params.get("amount"), tx.amount):
            raise ProtocolError(PaymeErrorCode.INVALID_AMOUNT)

        if tx.provider_transaction_id == payme_id:
            return {
                "create_time": tx.provider_create_time or create_time,
                "transaction": tx.id,
                "state": int(map_to_payme_state(tx.status, bool(tx.provider_perform_time))),
            }

        if tx.provider_transaction_id:
            if tx.status == TransactionStatus.PREPARED and self._prepare_expired(tx):
                await apply_transition(
                    self.store,
                    tx,
                    {
                        "provider_transaction_id": payme_id,
                        "provider_create_time": create_time,
                        "provider": PROVIDER,
                    },
                    replace_provider_id=True,
                )
                self.logger.info(
                    "payme_prepared_transaction_replaced",
                    transaction_id=tx.id,
                    previous_payme_id=tx.provider_transaction_id,
                    payme_id=payme_id,
                )
                return {"create_time": create_time, "transaction": tx.id, "state": int(PaymeState.CREATED)}
            raise ProtocolError(PaymeErrorCode.ORDER_ALREADY_PAID)

        if tx.is_final_status():
            raise ProtocolError(PaymeErrorCode.CANNOT_PERFORM_OPERATION)

        await apply_transition(
            self.store,
            tx,
            {
                "status": TransactionStatus.PREPARED,
                "provider_transaction_id": payme_id,
                "provider_create_time": create_time,
                "provider": PROVIDER,
            },
        )
        return {"create_time": create_time, "transaction": tx.id, "state": int(PaymeState.CREATED)}

    async def perform_transaction(self, params: Mapping[str, Any]) -> dict[str, Any]:
        payme_id, tx = await self._by_payme_id(params)

        if tx.status == TransactionStatus.COMPLETED:
            return {
                "transaction": tx.id,
                "perform_time": tx.provider_perform_time or _ms(tx.updated_at or tx.created_at),
                "state": int(PaymeState.COMPLETED),
            }
        if tx.status != TransactionStatus.PREPARED:
            raise ProtocolError(PaymeErrorCode.CANNOT_PERFORM_OPERATION)

        perform_time = now_ms()
        await complete_transaction(
            self.store,
            self.callbacks,
            tx,
            {"provider_transaction_id": payme_id, "provider_perform_time": perform_time},
        )
        return {"transaction": tx.id, "perform_time": perform_time, "state": int(PaymeState.COMPLETED)}

    async def cancel_transaction(self, params: Mapping[str, Any]) -> dict[str, Any]:
        _, tx = await self._by_payme_id(params)

        if tx.status == TransactionStatus.FAILED:
            return {
                "transaction": tx.id,
                "cancel_time": tx.provider_cancel_time or _ms(tx.updated_at or tx.created_at),
                "state": int(map_to_payme_state(tx.status, bool(tx.provider_perform_time))),
            }

        reason = as_int(params.get("reason"))
        cancel_time = now_ms()
        if tx.status == TransactionStatus.COMPLETED:
            state = PaymeState.CANCELLED_AFTER_COMPLETE
            if reason is None:
                reason = int(CancelReason.REFUND)
        else:
            state = PaymeState.CANCELLED_BEFORE_COMPLETE

        await cancel_transaction(
            self.store,
            self.callbacks,
            tx,
            {"provider_cancel_time": cancel_time, "cancel_reason": reason},
        )
        return {"transaction": tx.id, "cancel_time": cancel_time, "state": int(state)}

    async def check_transaction(self, params: Mapping[str, Any]) -> dict[str, Any]:
        _, tx = await self._by_payme_id(params)
        return describe_transaction(tx)

    async def get_statement(self, params: Mapping[str, Any]) -> dict[str, Any]:
        date_from, date_to = params.get("from"), params.get("to")
        if date_from is None or date_to is None:
            raise ProtocolError(PaymeErrorCode.INVALID_RPC_REQUEST)

        transactions = await self.store.get_transactions_by_date_range(PROVIDER, date_from, date_to)
        items = []
        for tx in transactions:
            described = describe_transaction(tx)
            items.append({
                "id": tx.provider_transaction_id,
                "time": described["create_time"],
                "amount": tx.amount,
                "account": {"order_id": tx.id},
                **described,
            })
        return {"transactions": items}


async def handle_payme_webhook(
    config: PaymeSettings,
    store: PaymentStore,
    callbacks: PaymentCallbacks,
    authorization: Optional[str],
    body: Any,
    logger: Any = None,
) -> WebhookResult:
    """Handle one Payme JSON-RPC request. Always answers HTTP 200."""
    return await PaymeWebhookHandler(config, store, callbacks, logger).handle(authorization, body)
