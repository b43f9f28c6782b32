"""
In-memory PaymentStore.

Reference implementation of the store contract, used by the test-suite and
for local experiments. Not shared between processes.
"""
from __future__ import annotations

import dataclasses
from typing import Any, Mapping, Optional, Sequence
from uuid import uuid4

from domain.common.exceptions import (
    DomainValidationException,
    PendingTransactionExistsException,
    ShortIdTakenException,
    TransactionNotFoundException,
)
from domain.payment.entity import UPDATABLE_FIELDS, NewTransaction, Transaction, TransactionStatus
from domain.payment.repository import PaymentStore, RangeBound
from shared.utils.timefmt import parse_range_bound, utcnow


class InMemoryPaymentStore(PaymentStore):
    def __init__(self) -> None:
        self._transactions: dict[str, Transaction] = {}

    def _short_id_live_elsewhere(self, short_id: str, transaction_id: Optional[str] = None) -> bool:
        return any(
            tx.short_id == short_id and not tx.is_final_status() and tx.id != transaction_id
            for tx in self._transactions.values()
        )

    def __len__(self) -> int:
        return len(self._transactions)

    def all(self) -> list[Transaction]:
        return [dataclasses.replace(tx) for tx in self._transactions.values()]

    def add(self, transaction: Transaction) -> Transaction:
        """Seed a fully-formed transaction (tests)."""
        created_at = transaction.created_at or utcnow()
        stored = dataclasses.replace(
            transaction,
            created_at=created_at,
            updated_at=transaction.updated_at or created_at,
        )
        self._transactions[stored.id] = stored
        return dataclasses.replace(stored)

    async def create_transaction(self, data: NewTransaction) -> Transaction:
        if TransactionStatus(data.status) == TransactionStatus.PENDING:
            if await self.find_pending_transaction(data.user_id, data.plan_id) is not None:
                raise PendingTransactionExistsException(data.user_id, data.plan_id)
        if data.short_id and self._short_id_live_elsewhere(data.short_id):
            raise ShortIdTakenException(data.short_id)

        now = utcnow()
        tx = Transaction(
            id=str(uuid4()),
            user_id=data.user_id,
            plan_id=data.plan_id,
            provider=data.provider,
            amount=data.amount,
            status=data.status,
            short_id=data.short_id,
            created_at=now,
            updated_at=now,
        )
        self._transactions[tx.id] = tx
        return dataclasses.replace(tx)

    async def get_transaction_by_id(self, transaction_id: str) -> Optional[Transaction]:
        tx = self._transactions.get(transaction_id)
        return dataclasses.replace(tx) if tx else None

    async def get_transaction_by_short_id(self, short_id: str) -> Optional[Transaction]:
        matches = [tx for tx in self._transactions.values() if tx.short_id == short_id]
        if not matches:
            return None
        matches.sort(key=lambda tx: (tx.is_final_status(), -tx.created_at.timestamp()))
        return dataclasses.replace(matches[0])

    async def get_transaction_by_provider_id(
        self,
        provider: str,
        provider_transaction_id: str,
    ) -> Optional[Transaction]:
        for tx in self._transactions.values():
            if tx.provider == provider and tx.provider_transaction_id == provider_transaction_id:
                return dataclasses.replace(tx)
        return None

    async def update_transaction(self, transaction_id: str, fields: Mapping[str, Any]) -> None:
        unknown = set(fields) - UPDATABLE_FIELDS
        if unknown:
            raise DomainValidationException(
                f"Fields cannot be updated: {sorted(unknown)}",
                details={"fields": sorted(unknown)},
            )
        current = self._transactions.get(transaction_id)
        if current is None:
            raise TransactionNotFoundException(transaction_id)
        updated = dataclasses.replace(current, **fields, updated_at=utcnow())
        if (
            "short_id" in fields
            and updated.short_id
            and not updated.is_final_status()
            and self._short_id_live_elsewhere(updated.short_id, transaction_id)
        ):
            raise ShortIdTakenException(updated.short_id)
        self._transactions[transaction_id] = updated

    async def find_pending_transaction(self, user_id: str, plan_id: str) -> Optional[Transaction]:
        for tx in self._transactions.values():
            if tx.user_id == user_id and tx.plan_id == plan_id and tx.status == TransactionStatus.PENDING:
                return dataclasses.replace(tx)
        return None

    async def get_transactions_by_date_range(
        self,
        provider: str,
        date_from: RangeBound,
        date_to: RangeBound,
    ) -> Sequence[Transaction]:
        start, end = parse_range_bound(date_from), parse_range_bound(date_to)
        found = [
            tx for tx in self._transactions.values()
            if tx.provider == provider and start <= tx.created_at <= end
        ]
        found.sort(key=lambda tx: tx.created_at)
        return [dataclasses.replace(tx) for tx in found]
