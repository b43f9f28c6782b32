"""
支付交易数据库模型 - SQLAlchemy ORM模型
注意：这是基础设施层的实现细节，不是领域模型
"""
from datetime import datetime, timezone

from sqlalchemy import BigInteger, Column, DateTime, Index, Integer, String

from .base import Base


LIVE_STATUSES = ("PENDING", "PREPARED")


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class PaymentTransactionModel(Base):
    """
    Row mapping of domain.payment.entity.Transaction.

    No business logic lives here; lifecycle rules are enforced by the entity.
    """
    __tablename__ = "payment_transactions"

    id = Column(String(36), primary_key=True, comment="Internal transaction id (uuid4)")

    user_id = Column(String(100), nullable=False, comment="Host application user id")
    plan_id = Column(String(100), nullable=False, comment="Host application plan / product id")

    provider = Column(String(20), nullable=False, index=True, comment="payme/click/paynet")
    amount = Column(BigInteger, nullable=False, comment="Amount in minor units (tiyin)")
    status = Column(
        String(20),
        nullable=False,
        default="PENDING",
        index=True,
        comment="PENDING/PREPARED/COMPLETED/FAILED",
    )

    provider_transaction_id = Column(String(100), nullable=True, comment="Provider's transaction id")
    provider_create_time = Column(BigInteger, nullable=True, comment="epoch ms")
    provider_perform_time = Column(BigInteger, nullable=True, comment="epoch ms")
    provider_cancel_time = Column(BigInteger, nullable=True, comment="epoch ms")
    cancel_reason = Column(Integer, nullable=True)

    short_id = Column(String(10), nullable=True, index=True, comment="5-digit reference for Click/Paynet")

    created_at = Column(DateTime(timezone=True), default=_utcnow, nullable=False, index=True)
    updated_at = Column(DateTime(timezone=True), default=_utcnow, onupdate=_utcnow, nullable=False)

    __table_args__ = (
        Index("ix_payment_transactions_provider_ref", "provider", "provider_transaction_id"),
        Index("ix_payment_transactions_user_plan", "user_id", "plan_id"),
        # at most one PENDING row per (user, plan)
        Index(
            "uq_payment_transactions_pending_pair",
            "user_id",
            "plan_id",
            unique=True,
            sqlite_where=status == "PENDING",
            postgresql_where=status == "PENDING",
        ),
        # a short id belongs to at most one live (PENDING/PREPARED) row
        Index(
            "uq_payment_transactions_live_short_id",
            "short_id",
            unique=True,
            sqlite_where=status.in_(LIVE_STATUSES),
            postgresql_where=status.in_(LIVE_STATUSES),
        ),
    )

    def __repr__(self):
        return (
            f"<PaymentTransactionModel(id='{self.id}', provider='{self.provider}', "
            f"amount={self.amount}, status='{self.status}')>"
        )
