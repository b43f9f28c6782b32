"""
Payment domain entity - the canonical transaction record shared by all providers.
"""
from __future__ import annotations

import dataclasses
from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum, IntEnum
from typing import Any, Mapping, Optional

from domain.common.exceptions import DomainValidationException, InvalidTransitionException


class TransactionStatus(str, Enum):
    """Transaction lifecycle status."""
    PENDING = "PENDING"         # created, waiting for the provider
    PREPARED = "PREPARED"       # reserved by the provider (Payme create / Click prepare)
    COMPLETED = "COMPLETED"     # paid, entitlement granted
    FAILED = "FAILED"           # cancelled or refunded


class PaymentProvider(str, Enum):
    PAYME = "payme"
    CLICK = "click"
    PAYNET = "paynet"


class CancelReason(IntEnum):
    """Cancellation reasons (Payme vocabulary, reused by every provider)."""
    RECEIVERS_NOT_FOUND = 1
    DEBIT_ERROR = 2
    TRANSACTION_ERROR = 3
    TIMEOUT = 4
    REFUND = 5
    UNKNOWN = 10


# PENDING -> COMPLETED is the Paynet flow, which has no prepare step
_ALLOWED_TRANSITIONS: Mapping[TransactionStatus, frozenset] = {
    TransactionStatus.PENDING: frozenset({
        TransactionStatus.PREPARED, TransactionStatus.COMPLETED, TransactionStatus.FAILED,
    }),
    TransactionStatus.PREPARED: frozenset({
        TransactionStatus.COMPLETED, TransactionStatus.FAILED,
    }),
    TransactionStatus.COMPLETED: frozenset({TransactionStatus.FAILED}),
    TransactionStatus.FAILED: frozenset(),
}

# Fields a handler may change through PaymentStore.update_transaction
UPDATABLE_FIELDS = frozenset({
    "status",
    "provider",
    "amount",
    "short_id",
    "provider_transaction_id",
    "provider_create_time",
    "provider_perform_time",
    "provider_cancel_time",
    "cancel_reason",
})


def _ensure_utc(dt: Optional[datetime]) -> Optional[datetime]:
    if dt is None:
        return None
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


@dataclass
class NewTransaction:
    """Fields accepted by PaymentStore.create_transaction."""

    user_id: str
    plan_id: str
    provider: str
    amount: int
    status: TransactionStatus = TransactionStatus.PENDING
    short_id: Optional[str] = None


@dataclass
class Transaction:
    """
    Canonical payment transaction.

    Business rules:
    1. amount is always stored in minor units (tiyin)
    2. status only moves forward; COMPLETED -> FAILED (refund) is the one
       backward move and needs a cancel reason and cancel time
    3. provider_transaction_id is immutable once set, unless the caller
       explicitly replaces it (Payme expiry rule)
    """

    id: str
    user_id: str
    plan_id: str
    provider: str
    amount: int
    status: TransactionStatus
    provider_transaction_id: Optional[str] = None
    provider_create_time: Optional[int] = None   # epoch ms
    provider_perform_time: Optional[int] = None  # epoch ms
    provider_cancel_time: Optional[int] = None   # epoch ms
    cancel_reason: Optional[int] = None
    short_id: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    def __post_init__(self):
        self.status = TransactionStatus(self.status)
        if isinstance(self.amount, bool) or not isinstance(self.amount, int) or self.amount <= 0:
            raise DomainValidationException(
                f"amount must be a positive integer in minor units: {self.amount!r}",
                field="amount",
            )
        self.created_at = _ensure_utc(self.created_at)
        self.updated_at = _ensure_utc(self.updated_at)

    def is_final_status(self) -> bool:
        return self.status in (TransactionStatus.COMPLETED, TransactionStatus.FAILED)

    def can_transition_to(self, target: TransactionStatus) -> bool:
        target = TransactionStatus(target)
        return target == self.status or target in _ALLOWED_TRANSITIONS[self.status]

    def evolve(self, changes: Mapping[str, Any], *, replace_provider_id: bool = False) -> "Transaction":
        """Return the transaction as it would look after ``changes`` are persisted.

        Raises InvalidTransitionException when the change breaks the lifecycle.
        """
        unknown = set(changes) - UPDATABLE_FIELDS
        if unknown:
            raise DomainValidationException(
                f"Fields cannot be updated: {sorted(unknown)}",
                details={"fields": sorted(unknown)},
            )

        target = TransactionStatus(changes.get("status", self.status))
        if not self.can_transition_to(target):
            raise InvalidTransitionException(self.id, self.status.value, target.value)

        if self.status == TransactionStatus.COMPLETED and target == TransactionStatus.FAILED:
            if changes.get("cancel_reason") is None or changes.get("provider_cancel_time") is None:
                raise InvalidTransitionException(
                    self.id, self.status.value, target.value,
                    reason="refund requires cancel_reason and provider_cancel_time",
                )

        ext_id = changes.get("provider_transaction_id")
        if (
            ext_id is not None
            and self.provider_transaction_id
            and ext_id != self.provider_transaction_id
            and not replace_provider_id
        ):
            raise InvalidTransitionException(
                self.id, self.status.value, target.value,
                reason="provider transaction id is already set",
            )

        values = dict(changes)
        values["status"] = target
        return dataclasses.replace(self, **values)
