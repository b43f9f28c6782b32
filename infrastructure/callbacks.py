"""
Callback wiring for the composition root.

The host application names its PaymentCallbacks implementation with
``PAYMENT_CALLBACKS="package.module:ClassName"``. Without it the service runs
with ``LoggingPaymentCallbacks``, which only records the events.
"""
from __future__ import annotations

import importlib
from typing import Optional

from application.ports.payment_callbacks import PaymentCallbacks
from core.logging_config import get_logger
from domain.payment.entity import Transaction


logger = get_logger(__name__)


class LoggingPaymentCallbacks(PaymentCallbacks):
    """Development callbacks: acknowledge every event without side effects."""

    async def on_payment_completed(self, transaction: Transaction) -> None:
        logger.info(
            "entitlement_granted",
            transaction_id=transaction.id,
            user_id=transaction.user_id,
            plan_id=transaction.plan_id,
            provider=transaction.provider,
        )

    async def on_payment_cancelled(self, transaction: Transaction) -> None:
        logger.info(
            "entitlement_revoked",
            transaction_id=transaction.id,
            user_id=transaction.user_id,
            plan_id=transaction.plan_id,
            provider=transaction.provider,
        )


def load_callbacks(path: Optional[str]) -> PaymentCallbacks:
    """Instantiate ``module:ClassName``; fall back to LoggingPaymentCallbacks."""
    if not path:
        logger.warning("payment_callbacks_not_configured", fallback="LoggingPaymentCallbacks")
        return LoggingPaymentCallbacks()

    module_name, _, attr = path.partition(":")
    if not module_name or not attr:
        raise ValueError(f"PAYMENT_CALLBACKS must look like 'package.module:ClassName', got {path!r}")
    factory = getattr(importlib.import_module(module_name), attr)
    callbacks = factory()
    if not isinstance(callbacks, PaymentCallbacks):
        raise TypeError(f"{path} does not produce a PaymentCallbacks instance")
    return callbacks
