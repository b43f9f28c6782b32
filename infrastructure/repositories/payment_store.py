"""
支付交易存储实现 - 使用SQLAlchemy实现 PaymentStore 契约

Each call opens its own session and commits before returning, so a read that
follows an update always observes it.
"""
from typing import Any, Mapping, Optional, Sequence
from uuid import uuid4

from sqlalchemy import case, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from core.logging_config import get_logger
from domain.common.exceptions import (
    DomainValidationException,
    PendingTransactionExistsException,
    ShortIdTakenException,
    TransactionNotFoundException,
)
from domain.payment.entity import UPDATABLE_FIELDS, NewTransaction, Transaction, TransactionStatus
from domain.payment.repository import PaymentStore, RangeBound
from infrastructure.models.payment import PaymentTransactionModel
from shared.utils.timefmt import parse_range_bound, utcnow


logger = get_logger(__name__)

_TERMINAL = (TransactionStatus.COMPLETED.value, TransactionStatus.FAILED.value)


def _is_short_id_conflict(exc: IntegrityError) -> bool:
    # SQLite names the column, PostgreSQL the index; both contain "short_id"
    return "short_id" in str(exc.orig)


class SQLAlchemyPaymentStore(PaymentStore):
    """PaymentStore over the ``payment_transactions`` table."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self.session_factory = session_factory

    @staticmethod
    def _to_entity(model: PaymentTransactionModel) -> Transaction:
        """将数据库模型转换为领域实体"""
        return Transaction(
            id=model.id,
            user_id=model.user_id,
            plan_id=model.plan_id,
            provider=model.provider,
            amount=model.amount,
            status=TransactionStatus(model.status),
            provider_transaction_id=model.provider_transaction_id,
            provider_create_time=model.provider_create_time,
            provider_perform_time=model.provider_perform_time,
            provider_cancel_time=model.provider_cancel_time,
            cancel_reason=model.cancel_reason,
            short_id=model.short_id,
            created_at=model.created_at,
            updated_at=model.updated_at,
        )

    async def _first(self, stmt) -> Optional[Transaction]:
        async with self.session_factory() as session:
            result = await session.execute(stmt.limit(1))
            model = result.scalars().first()
            return self._to_entity(model) if model else None

    async def create_transaction(self, data: NewTransaction) -> Transaction:
        now = utcnow()
        model = PaymentTransactionModel(
            id=str(uuid4()),
            user_id=data.user_id,
            plan_id=data.plan_id,
            provider=data.provider,
            amount=data.amount,
            status=TransactionStatus(data.status).value,
            short_id=data.short_id,
            created_at=now,
            updated_at=now,
        )
        entity = self._to_entity(model)

        async with self.session_factory() as session:
            session.add(model)
            try:
                await session.commit()
            except IntegrityError as exc:
                await session.rollback()
                if data.short_id and _is_short_id_conflict(exc):
                    logger.warning("payment_short_id_conflict", short_id=data.short_id)
                    raise ShortIdTakenException(data.short_id)
                logger.warning(
                    "payment_transaction_create_conflict",
                    user_id=data.user_id,
                    plan_id=data.plan_id,
                )
                raise PendingTransactionExistsException(data.user_id, data.plan_id)
        return entity

    async def get_transaction_by_id(self, transaction_id: str) -> Optional[Transaction]:
        return await self._first(
            select(PaymentTransactionModel).where(PaymentTransactionModel.id == transaction_id)
        )

    async def get_transaction_by_short_id(self, short_id: str) -> Optional[Transaction]:
        # short ids are recycled once a transaction is terminal; the live one wins
        terminal_last = case((PaymentTransactionModel.status.in_(_TERMINAL), 1), else_=0)
        return await self._first(
            select(PaymentTransactionModel)
            .where(PaymentTransactionModel.short_id == short_id)
            .order_by(terminal_last, PaymentTransactionModel.created_at.desc())
        )

    async def get_transaction_by_provider_id(
        self,
        provider: str,
        provider_transaction_id: str,
    ) -> Optional[Transaction]:
        return await self._first(
            select(PaymentTransactionModel)
            .where(
                PaymentTransactionModel.provider == provider,
                PaymentTransactionModel.provider_transaction_id == provider_transaction_id,
            )
            .order_by(PaymentTransactionModel.created_at.desc())
        )

    async def update_transaction(self, transaction_id: str, fields: Mapping[str, Any]) -> None:
        unknown = set(fields) - UPDATABLE_FIELDS
        if unknown:
            raise DomainValidationException(
                f"Fields cannot be updated: {sorted(unknown)}",
                details={"fields": sorted(unknown)},
            )

        values = dict(fields)
        if "status" in values:
            values["status"] = TransactionStatus(values["status"]).value
        if values.get("cancel_reason") is not None:
            values["cancel_reason"] = int(values["cancel_reason"])
        values["updated_at"] = utcnow()

        async with self.session_factory() as session:
            try:
                result = await session.execute(
                    update(PaymentTransactionModel)
                    .where(PaymentTransactionModel.id == transaction_id)
                    .values(**values)
                )
            except IntegrityError as exc:
                await session.rollback()
                if values.get("short_id") and _is_short_id_conflict(exc):
                    logger.warning("payment_short_id_conflict", short_id=values["short_id"])
                    raise ShortIdTakenException(values["short_id"])
                raise
            if result.rowcount == 0:
                await session.rollback()
                raise TransactionNotFoundException(transaction_id)
            await session.commit()

    async def find_pending_transaction(self, user_id: str, plan_id: str) -> Optional[Transaction]:
        return await self._first(
            select(PaymentTransactionModel)
            .where(
                PaymentTransactionModel.user_id == user_id,
                PaymentTransactionModel.plan_id == plan_id,
                PaymentTransactionModel.status == TransactionStatus.PENDING.value,
            )
            .order_by(PaymentTransactionModel.created_at.desc())
        )

    async def get_transactions_by_date_range(
        self,
        provider: str,
        date_from: RangeBound,
        date_to: RangeBound,
    ) -> Sequence[Transaction]:
        start, end = parse_range_bound(date_from), parse_range_bound(date_to)
        async with self.session_factory() as session:
            result = await session.execute(
                select(PaymentTransactionModel)
                .where(
                    PaymentTransactionModel.provider == provider,
                    PaymentTransactionModel.created_at >= start,
                    PaymentTransactionModel.created_at <= end,
                )
                .order_by(PaymentTransactionModel.created_at)
            )
            return [self._to_entity(model) for model in result.scalars().all()]
