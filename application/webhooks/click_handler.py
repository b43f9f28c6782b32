"""
Click SHOP-API webhook handler (Prepare ``action=0`` / Complete ``action=1``).

Click identifies the order by ``merchant_trans_id``, which may be either our
transaction id or its numeric short id. A negative ``error`` from Click means
the payment failed on their side; the transaction is forced to FAILED and
Click gets -9 back.
"""
from __future__ import annotations

from typing import Any, Mapping, Optional

from application.dtos.payments import WebhookResult
from application.ports.payment_callbacks import PaymentCallbacks
from application.webhooks.dispatcher import ProtocolError, invoke
from application.webhooks.params import as_int
from application.webhooks.transitions import apply_transition, cancel_transaction, complete_transaction
from core.logging_config import get_logger
from core.settings import ClickSettings
from domain.payment.entity import CancelReason, PaymentProvider, Transaction, TransactionStatus
from domain.payment.repository import PaymentStore
from infrastructure.external.payments.click import ClickProtocol, verify_click_signature
from shared.codes.payment_codes import ClickAction, ClickErrorCode
from shared.utils.currency import to_minor
from shared.utils.timefmt import now_ms


PROVIDER = PaymentProvider.CLICK.value

# Click rounds amounts on its side; one tiyin either way is accepted
AMOUNT_TOLERANCE = 1


class ClickWebhookHandler:
    """Click endpoint: sign check, order resolution, action dispatch."""

    protocol = ClickProtocol()

    def __init__(
        self,
        config: ClickSettings,
        store: PaymentStore,
        callbacks: PaymentCallbacks,
        logger: Any = None,
    ) -> None:
        self.config = config
        self.store = store
        self.callbacks = callbacks
        self.logger = logger or get_logger(__name__)
        self._actions = {
            int(ClickAction.PREPARE): self.prepare,
            int(ClickAction.COMPLETE): self.complete,
        }

    async def handle(self, body: Any) -> WebhookResult:
        if not isinstance(body, Mapping) or body.get("click_trans_id") in (None, ""):
            return WebhookResult(status=200, body=self.protocol.error(None, ClickErrorCode.BAD_REQUEST))

        if not verify_click_signature(self.config.secret_key, body):
            self.logger.warning(
                "click_signature_invalid",
                click_trans_id=str(body.get("click_trans_id")),
                merchant_trans_id=str(body.get("merchant_trans_id")),
            )
            return WebhookResult(status=200, body=self.protocol.error(None, ClickErrorCode.SIGN_CHECK_FAILED))

        action = as_int(body.get("action"))
        response = await invoke(self.protocol, self._process, action, None, self.logger, action, body)
        return WebhookResult(status=200, body=response)

    async def _process(self, action: Optional[int], body: Mapping[str, Any]) -> dict[str, Any]:
        # the order and amount are checked before the action is looked up
        tx = await self._resolve(body)
        handler = self._actions.get(action)
        if handler is None:
            self.logger.warning("webhook_method_not_found", provider=PROVIDER, method=str(body.get("action")))
            raise ProtocolError(ClickErrorCode.ACTION_NOT_FOUND)
        return await handler(tx, body)

    # ------------------------------------------------------------------
    # shared resolution
    # ------------------------------------------------------------------

    async def _find_order(self, merchant_trans_id: Any) -> Optional[Transaction]:
        if merchant_trans_id in (None, ""):
            return None
        key = str(merchant_trans_id)
        tx = await self.store.get_transaction_by_id(key)
        if tx is None:
            tx = await self.store.get_transaction_by_short_id(key)
        return tx

    async def _resolve(self, body: Mapping[str, Any]) -> Transaction:
        """Find the order, apply Click's failure signal, verify the amount."""
        tx = await self._find_order(body.get("merchant_trans_id"))
        if tx is None:
            raise ProtocolError(ClickErrorCode.USER_NOT_FOUND)

        provider_error = as_int(body.get("error"))
        if provider_error is not None and provider_error < 0:
            await self._fail(tx, str(body["click_trans_id"]), provider_error)
            raise ProtocolError(ClickErrorCode.TRANSACTION_CANCELLED)

        try:
            amount = to_minor(body.get("amount"))
        except ValueError:
            raise ProtocolError(ClickErrorCode.INVALID_AMOUNT)
        if abs(amount - tx.amount) > AMOUNT_TOLERANCE:
            raise ProtocolError(ClickErrorCode.INVALID_AMOUNT)
        return tx

    def _ensure_not_held(self, tx: Transaction, click_trans_id: str) -> None:
        """Reject an order already bound to a different provider transaction."""
        if tx.provider_transaction_id and tx.provider_transaction_id != click_trans_id:
            self.logger.warning(
                "click_order_held_elsewhere",
                transaction_id=tx.id,
                provider=tx.provider,
                click_trans_id=click_trans_id,
            )
            raise ProtocolError(ClickErrorCode.ALREADY_PAID)

    async def _fail(self, tx: Transaction, click_trans_id: str, provider_error: int) -> None:
        self.logger.warning(
            "click_reported_failure",
            transaction_id=tx.id,
            click_trans_id=click_trans_id,
            click_error=provider_error,
            status=tx.status.value,
        )
        if tx.status == TransactionStatus.FAILED:
            return
        self._ensure_not_held(tx, click_trans_id)

        changes: dict[str, Any] = {
            "provider_cancel_time": now_ms(),
            "cancel_reason": int(CancelReason.TRANSACTION_ERROR),
            "provider": PROVIDER,
        }
        if not tx.provider_transaction_id:
            changes["provider_transaction_id"] = click_trans_id
        await cancel_transaction(self.store, self.callbacks, tx, changes)

    # ------------------------------------------------------------------
    # actions
    # ------------------------------------------------------------------

    async def prepare(self, tx: Transaction, body: Mapping[str, Any]) -> dict[str, Any]:
        if tx.status == TransactionStatus.COMPLETED:
            raise ProtocolError(ClickErrorCode.ALREADY_PAID)
        if tx.status == TransactionStatus.FAILED:
            raise ProtocolError(ClickErrorCode.TRANSACTION_CANCELLED)

        click_trans_id = str(body["click_trans_id"])
        self._ensure_not_held(tx, click_trans_id)
        if tx.status == TransactionStatus.PENDING:
            await apply_transition(
                self.store,
                tx,
                {
                    "status": TransactionStatus.PREPARED,
                    "provider_transaction_id": click_trans_id,
                    "provider": PROVIDER,
                },
            )

        return {
            "click_trans_id": body["click_trans_id"],
            "merchant_trans_id": body.get("merchant_trans_id"),
            "merchant_prepare_id": tx.id,
        }

    async def complete(self, tx: Transaction, body: Mapping[str, Any]) -> dict[str, Any]:
        prepare_id = body.get("merchant_prepare_id")
        if prepare_id in (None, "") or str(prepare_id) != tx.id:
            raise ProtocolError(ClickErrorCode.TRANSACTION_NOT_FOUND)

        click_trans_id = str(body["click_trans_id"])
        self._ensure_not_held(tx, click_trans_id)

        response = {
            "click_trans_id": body["click_trans_id"],
            "merchant_trans_id": body.get("merchant_trans_id"),
            "merchant_confirm_id": tx.id,
        }
        if tx.status == TransactionStatus.COMPLETED:
            return response
        if tx.status == TransactionStatus.FAILED:
            raise ProtocolError(ClickErrorCode.TRANSACTION_CANCELLED)

        await complete_transaction(
            self.store,
            self.callbacks,
            tx,
            {
                "provider_transaction_id": click_trans_id,
                "provider_perform_time": now_ms(),
                "provider": PROVIDER,
            },
        )
        return response


async def handle_click_webhook(
    config: ClickSettings,
    store: PaymentStore,
    callbacks: PaymentCallbacks,
    body: Any,
    logger: Any = None,
) -> WebhookResult:
    """Handle one Click Prepare/Complete request. Always answers HTTP 200."""
    return await ClickWebhookHandler(config, store, callbacks, logger).handle(body)
