"""
Shared transition template: validate -> invoke callback -> persist.

For grant/revoke transitions the callback always completes before the status
is written. If the callback raises, nothing is persisted and the exception
propagates to the dispatcher, which answers with an internal error so the
provider retries.
"""
from __future__ import annotations

from typing import Any, Mapping

from application.ports.payment_callbacks import PaymentCallbacks
from core.logging_config import get_logger
from domain.payment.entity import Transaction, TransactionStatus
from domain.payment.repository import PaymentStore


logger = get_logger(__name__)


async def apply_transition(
    store: PaymentStore,
    transaction: Transaction,
    changes: Mapping[str, Any],
    *,
    replace_provider_id: bool = False,
) -> Transaction:
    """Persist a transition without an external side effect (prepare, early cancel)."""
    updated = transaction.evolve(changes, replace_provider_id=replace_provider_id)
    await store.update_transaction(transaction.id, dict(changes))
    logger.info(
        "transaction_transitioned",
        transaction_id=transaction.id,
        provider=updated.provider,
        from_status=transaction.status.value,
        to_status=updated.status.value,
    )
    return updated


async def complete_transaction(
    store: PaymentStore,
    callbacks: PaymentCallbacks,
    transaction: Transaction,
    changes: Mapping[str, Any],
) -> Transaction:
    """Grant the entitlement, then mark the transaction COMPLETED."""
    fields = {**changes, "status": TransactionStatus.COMPLETED}
    completed = transaction.evolve(fields)

    await callbacks.on_payment_completed(completed)
    await store.update_transaction(transaction.id, fields)

    logger.info(
        "payment_completed",
        transaction_id=transaction.id,
        provider=completed.provider,
        provider_transaction_id=completed.provider_transaction_id,
        amount=completed.amount,
    )
    return completed


async def cancel_transaction(
    store: PaymentStore,
    callbacks: PaymentCallbacks,
    transaction: Transaction,
    changes: Mapping[str, Any],
) -> Transaction:
    """Mark the transaction FAILED, revoking the entitlement first if it was granted."""
    fields = {**changes, "status": TransactionStatus.FAILED}
    cancelled = transaction.evolve(fields)

    refunded = transaction.status == TransactionStatus.COMPLETED
    if refunded:
        await callbacks.on_payment_cancelled(cancelled)
    await store.update_transaction(transaction.id, fields)

    logger.info(
        "payment_cancelled",
        transaction_id=transaction.id,
        provider=cancelled.provider,
        refunded=refunded,
        cancel_reason=cancelled.cancel_reason,
    )
    return cancelled
