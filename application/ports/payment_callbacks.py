"""
Payment callbacks port - the business logic the host application plugs in.

Handlers await these strictly in sequence. A callback that returns normally
means the side effect happened; raising means "not done, let the provider retry".
"""
from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Optional

from application.dtos.payments import FiscalDetail, UserInfo
from domain.payment.entity import Transaction


class PaymentCallbacks(ABC):

    @abstractmethod
    async def on_payment_completed(self, transaction: Transaction) -> None:
        """Grant the entitlement. Receives the transaction as it will be persisted."""

    @abstractmethod
    async def on_payment_cancelled(self, transaction: Transaction) -> None:
        """Revoke the entitlement of a completed payment (refund)."""

    async def get_user_info(self, user_id: str) -> Optional[UserInfo]:
        """Paynet GetInformation: user fields shown at the terminal."""
        return None

    async def get_fiscal_data(self, transaction: Transaction) -> Optional[FiscalDetail]:
        """Payme CheckPerformTransaction: fiscal receipt detail."""
        return None

    async def on_password_change_requested(self, new_password: str) -> None:
        """Paynet ChangePassword: rotate the stored credential."""
        return None
