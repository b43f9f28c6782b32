"""Infrastructure models package exports."""
from .base import Base, metadata
from .payment import PaymentTransactionModel

__all__ = [
    "Base",
    "metadata",
    "PaymentTransactionModel",
]
