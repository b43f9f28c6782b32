"""
Payment store contract - the persistence boundary used by every webhook handler.
"""
from abc import ABC, abstractmethod
from datetime import datetime
from typing import Any, Mapping, Optional, Sequence, Union

from .entity import NewTransaction, Transaction

RangeBound = Union[int, str, datetime]


class PaymentStore(ABC):
    """Abstract transaction store - defines what can be done, not how.

    Implementations must give read-your-writes consistency: a read issued
    after ``update_transaction`` returns observes the update.
    """

    @abstractmethod
    async def create_transaction(self, data: NewTransaction) -> Transaction:
        """Persist a new transaction and return it with a store-assigned id.

        Raises PendingTransactionExistsException when a PENDING transaction
        already exists for the same (user_id, plan_id), and
        ShortIdTakenException when another PENDING/PREPARED transaction holds
        ``data.short_id``.
        """

    @abstractmethod
    async def get_transaction_by_id(self, transaction_id: str) -> Optional[Transaction]:
        """Get a transaction by internal id."""

    @abstractmethod
    async def get_transaction_by_short_id(self, short_id: str) -> Optional[Transaction]:
        """Get a transaction by short id, preferring a non-terminal one."""

    @abstractmethod
    async def get_transaction_by_provider_id(
        self,
        provider: str,
        provider_transaction_id: str,
    ) -> Optional[Transaction]:
        """Get a transaction by the provider's external transaction id."""

    @abstractmethod
    async def update_transaction(self, transaction_id: str, fields: Mapping[str, Any]) -> None:
        """Apply a partial update; ``updated_at`` is refreshed by the store.

        Raises TransactionNotFoundException for an unknown id and
        ShortIdTakenException when a new short id is held by a live transaction.
        """

    @abstractmethod
    async def find_pending_transaction(self, user_id: str, plan_id: str) -> Optional[Transaction]:
        """Find the PENDING transaction of a (user, plan) pair."""

    @abstractmethod
    async def get_transactions_by_date_range(
        self,
        provider: str,
        date_from: RangeBound,
        date_to: RangeBound,
    ) -> Sequence[Transaction]:
        """List a provider's transactions created within [date_from, date_to]."""
