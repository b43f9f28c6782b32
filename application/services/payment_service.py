"""
Application service orchestrating payment use-cases.

The service owns no protocol logic: it checks that the requested provider is
configured, then hands the request to the matching webhook handler. Storage
and entitlement side effects come from the injected ``PaymentStore`` and
``PaymentCallbacks`` implementations, wired in the composition root (main.py).
"""
from __future__ import annotations

import asyncio
import secrets
import weakref
from typing import Any, Mapping, Optional

from application.dtos.payments import CreatePayment, CreatedPayment, WebhookResult
from application.ports.payment_callbacks import PaymentCallbacks
from application.webhooks.click_handler import handle_click_webhook
from application.webhooks.payme_handler import handle_payme_webhook
from application.webhooks.paynet_handler import handle_paynet_webhook
from core.logging_config import get_logger
from core.settings import PaymentSettings, payment_settings
from domain.common.exceptions import (
    DomainValidationException,
    PendingTransactionExistsException,
    ProviderNotConfiguredException,
    ShortIdGenerationException,
    ShortIdTakenException,
)
from domain.payment.entity import NewTransaction, PaymentProvider
from domain.payment.repository import PaymentStore
from shared.utils.currency import to_minor


# Providers whose users type the order reference by hand
SHORT_ID_PROVIDERS = frozenset({PaymentProvider.CLICK.value, PaymentProvider.PAYNET.value})


def generate_short_id() -> str:
    """Random 5-digit reference in [10000, 99999]."""
    return str(10000 + secrets.randbelow(90000))


def _authorization(headers: Optional[Mapping[str, Any]]) -> Optional[str]:
    if not headers:
        return None
    for key, value in headers.items():
        if str(key).lower() == "authorization":
            return value
    return None


class PaymentService:
    def __init__(
        self,
        store: PaymentStore,
        callbacks: PaymentCallbacks,
        *,
        settings: Optional[PaymentSettings] = None,
        logger: Any = None,
    ) -> None:
        self.store = store
        self.callbacks = callbacks
        self.settings = settings or payment_settings
        self.logger = logger or get_logger(__name__)
        self._creation_locks: "weakref.WeakValueDictionary[tuple[str, str], asyncio.Lock]" = (
            weakref.WeakValueDictionary()
        )

    def _provider_config(self, provider: str):
        config = getattr(self.settings, provider, None)
        if config is None or not config.is_configured:
            raise ProviderNotConfiguredException(provider)
        return config

    def _creation_lock(self, user_id: str, plan_id: str) -> asyncio.Lock:
        key = (user_id, plan_id)
        lock = self._creation_locks.get(key)
        if lock is None:
            lock = asyncio.Lock()
            self._creation_locks[key] = lock
        return lock

    # ------------------------------------------------------------------
    # creation
    # ------------------------------------------------------------------

    async def create_payment(self, req: CreatePayment) -> CreatedPayment:
        """Find or create the PENDING transaction for (user, plan)."""
        self._provider_config(req.provider)

        try:
            amount = to_minor(req.amount)
        except ValueError as exc:
            raise DomainValidationException(str(exc), field="amount")
        if amount <= 0:
            raise DomainValidationException(
                "amount is below the smallest currency unit", field="amount",
            )

        async with self._creation_lock(req.user_id, req.plan_id):
            pending_conflicts = 0
            short_id_conflicts = 0
            while True:
                try:
                    return await self._find_or_create(req, amount)
                except PendingTransactionExistsException:
                    # another process won the race; its row is reused on the next pass
                    pending_conflicts += 1
                    if pending_conflicts > 1:
                        raise
                except ShortIdTakenException as exc:
                    # the short id was claimed between the check and the write
                    short_id_conflicts += 1
                    self.logger.warning(
                        "short_id_taken", short_id=exc.short_id, attempt=short_id_conflicts,
                    )
                    if short_id_conflicts >= self.settings.short_id_max_retries:
                        raise ShortIdGenerationException(short_id_conflicts)

    async def _find_or_create(self, req: CreatePayment, amount: int) -> CreatedPayment:
        needs_short_id = req.provider in SHORT_ID_PROVIDERS
        existing = await self.store.find_pending_transaction(req.user_id, req.plan_id)

        if existing is not None:
            changes: dict[str, Any] = {}
            if existing.provider != req.provider:
                changes["provider"] = req.provider
            if existing.amount != amount:
                changes["amount"] = amount
            if needs_short_id and not existing.short_id:
                changes["short_id"] = await self._generate_unique_short_id()
            if changes:
                await self.store.update_transaction(existing.id, changes)

            self.logger.info(
                "payment_transaction_reused",
                transaction_id=existing.id,
                provider=req.provider,
                updated_fields=sorted(changes),
            )
            return CreatedPayment(
                transaction_id=existing.id,
                provider=req.provider,
                amount=amount,
                short_id=changes.get("short_id", existing.short_id),
                reused=True,
            )

        short_id = await self._generate_unique_short_id() if needs_short_id else None
        tx = await self.store.create_transaction(NewTransaction(
            user_id=req.user_id,
            plan_id=req.plan_id,
            provider=req.provider,
            amount=amount,
            short_id=short_id,
        ))
        self.logger.info(
            "payment_transaction_created",
            transaction_id=tx.id,
            provider=tx.provider,
            user_id=tx.user_id,
            plan_id=tx.plan_id,
            amount=tx.amount,
            short_id=tx.short_id,
        )
        return CreatedPayment(
            transaction_id=tx.id,
            provider=req.provider,
            amount=tx.amount,
            short_id=tx.short_id,
        )

    async def _generate_unique_short_id(self) -> str:
        """A short id not held by any non-terminal transaction."""
        attempts = self.settings.short_id_max_retries
        for _ in range(attempts):
            candidate = generate_short_id()
            holder = await self.store.get_transaction_by_short_id(candidate)
            if holder is None or holder.is_final_status():
                return candidate
        self.logger.error("short_id_generation_failed", attempts=attempts)
        raise ShortIdGenerationException(attempts)

    # ------------------------------------------------------------------
    # webhooks
    # ------------------------------------------------------------------

    async def handle_payme_webhook(self, headers: Optional[Mapping[str, Any]], body: Any) -> WebhookResult:
        config = self._provider_config(PaymentProvider.PAYME.value)
        return await handle_payme_webhook(
            config, self.store, self.callbacks, _authorization(headers), body, self.logger,
        )

    async def handle_click_webhook(self, body: Any) -> WebhookResult:
        config = self._provider_config(PaymentProvider.CLICK.value)
        return await handle_click_webhook(config, self.store, self.callbacks, body, self.logger)

    async def handle_paynet_webhook(self, headers: Optional[Mapping[str, Any]], body: Any) -> WebhookResult:
        config = self._provider_config(PaymentProvider.PAYNET.value)
        return await handle_paynet_webhook(
            config, self.store, self.callbacks, _authorization(headers), body, self.logger,
        )
