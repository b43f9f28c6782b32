"""Domain business exceptions, shared by the domain and infrastructure layers.

The core layer only maps them to HTTP responses; the domain layer never
depends on core.
"""
from __future__ import annotations

from typing import Optional
from shared.codes import BusinessCode


class BusinessException(Exception):
    """Base class for business exceptions."""

    def __init__(
        self,
        code: int,
        message: str,
        error_type: str = "BusinessError",
        details: Optional[dict] = None,
        field: Optional[str] = None,
    ) -> None:
        self.code = code
        self.message = message
        self.error_type = error_type
        self.details = details
        self.field = field
        super().__init__(self.message)


class DomainValidationException(BusinessException):
    def __init__(
        self,
        message: str,
        *,
        field: str | None = None,
        details: dict | None = None,
    ):
        super().__init__(
            code=BusinessCode.PARAM_VALIDATION_ERROR,
            message=message,
            error_type="DomainValidationError",
            details=details,
            field=field,
        )


class TransactionNotFoundException(BusinessException):
    def __init__(self, transaction_id: str):
        super().__init__(
            code=BusinessCode.TRANSACTION_NOT_FOUND,
            message=f"Transaction not found: {transaction_id}",
            error_type="TransactionNotFound",
            details={"transaction_id": transaction_id},
        )


class InvalidTransitionException(BusinessException):
    """Raised when a status change would break the transaction lifecycle."""

    def __init__(self, transaction_id: Optional[str], current: str, target: str, reason: str | None = None):
        message = f"Cannot move transaction {transaction_id} from {current} to {target}"
        if reason:
            message = f"{message}: {reason}"
        super().__init__(
            code=BusinessCode.INVALID_TRANSITION,
            message=message,
            error_type="InvalidTransition",
            details={"transaction_id": transaction_id, "from": current, "to": target},
            field="status",
        )


class PendingTransactionExistsException(BusinessException):
    """A PENDING transaction already exists for the (user, plan) pair."""

    def __init__(self, user_id: str, plan_id: str):
        super().__init__(
            code=BusinessCode.PENDING_TRANSACTION_EXISTS,
            message=f"Pending transaction already exists for user {user_id} and plan {plan_id}",
            error_type="PendingTransactionExists",
            details={"user_id": user_id, "plan_id": plan_id},
        )


class ShortIdGenerationException(BusinessException):
    def __init__(self, attempts: int):
        super().__init__(
            code=BusinessCode.SHORT_ID_EXHAUSTED,
            message=f"Failed to generate a unique short id after {attempts} attempts",
            error_type="ShortIdGeneration",
            details={"attempts": attempts},
        )


class ShortIdTakenException(BusinessException):
    """A live transaction already holds the short id."""

    def __init__(self, short_id: str):
        super().__init__(
            code=BusinessCode.SHORT_ID_TAKEN,
            message=f"Short id {short_id} is held by a live transaction",
            error_type="ShortIdTaken",
            details={"short_id": short_id},
            field="short_id",
        )
        self.short_id = short_id

class ProviderNotConfiguredException(BusinessException):
    """Programmer error: a provider is used without its credentials configured."""

    def __init__(self, provider: str):
        super().__init__(
            code=BusinessCode.PROVIDER_NOT_CONFIGURED,
            message=f"{provider} config not provided",
            error_type="ProviderNotConfigured",
            details={"provider": provider},
        )

