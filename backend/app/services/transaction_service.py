"""
Transaction Service for the MoMo Wallet backend.

Centralizes the transaction settlement flow:
- initiate: validate and record a PENDING deposit/withdrawal
- settle: move it to COMPLETED or FAILED and apply it to the balance
- history queries

Design Notes:
- The balance is changed with one conditional UPDATE
  (balance = round(balance + delta) WHERE round(balance + delta) >= 0), never read-then-write,
  so concurrent settlements on the same account cannot lose updates or overdraw.
- Status changes are compare-and-swap on status = 'pending', so a transaction
  is settled at most once.
- The caller is responsible for commit/rollback.
"""
from __future__ import annotations

import secrets
import string
from decimal import Decimal
from typing import List, Optional

from sqlalchemy import func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from backend.app.db.models import (
    FailureReason,
    Transaction,
    TransactionStatus,
    TransactionType,
    User,
    )
from backend.app.logging_config import get_logger
from backend.app.services.provider_registry import MobileMoneyProviderRegistry
from backend.app.utils.datetime_utils import epoch_millis, utcnow
from backend.app.utils.decimal_utils import get_model_column_precision, to_decimal, truncate_amount

logger = get_logger(__name__)

REFERENCE_PREFIX = "TXN"
REFERENCE_SUFFIX_LENGTH = 9
_REFERENCE_ALPHABET = string.digits + string.ascii_uppercase
# SQLite keeps NUMERIC as REAL; sums are rounded back to the column scale
_, BALANCE_SCALE = get_model_column_precision(User, "balance")


# =============================================================================
# ERRORS
# =============================================================================

class TransactionError(Exception):
    """Base class for transaction flow errors."""
    pass


class TransactionValidationError(TransactionError):
    """Raised when a transaction request is rejected before anything is stored."""
    pass


class InvalidAmountError(TransactionValidationError):
    """Raised when the amount is not a positive number."""
    pass


class InsufficientBalanceError(TransactionValidationError):
    """Raised when a withdrawal exceeds the balance known at initiation time."""

    def __init__(self, requested: Decimal, available: Decimal):
        self.requested = requested
        self.available = available
        super().__init__("Insufficient balance")


class UnknownProviderError(TransactionValidationError):
    """Raised when the provider code is not registered."""

    def __init__(self, provider: str):
        self.provider = provider
        super().__init__(f"Unknown provider: {provider}")


class TransactionNotFoundError(TransactionError):
    """Raised when a transaction id does not exist."""

    def __init__(self, transaction_id: str):
        self.transaction_id = transaction_id
        super().__init__(f"Transaction {transaction_id} not found")


class InvalidStatusTransitionError(TransactionError):
    """Raised when settling a transaction that is no longer PENDING."""

    def __init__(self, transaction_id: str, current: Optional[TransactionStatus]):
        self.transaction_id = transaction_id
        self.current = current
        state = current.value if current else "unknown"
        super().__init__(f"Transaction {transaction_id} is already {state}")


# =============================================================================
# HELPERS
# =============================================================================

def generate_reference() -> str:
    """
    User-facing transaction reference: TXN + epoch millis + 9 random base-36 chars.

    Example: TXN1718000000000K3J9QZ0AB
    """
    suffix = "".join(secrets.choice(_REFERENCE_ALPHABET) for _ in range(REFERENCE_SUFFIX_LENGTH))
    return f"{REFERENCE_PREFIX}{epoch_millis()}{suffix}"


def balance_delta(tx_type: TransactionType, amount: Decimal) -> Decimal:
    """Signed effect of a transaction on the balance."""
    return amount if tx_type == TransactionType.DEPOSIT else -amount


# =============================================================================
# SERVICE
# =============================================================================

class TransactionService:
    """
    Service for wallet transactions.

    All methods are async and expect an AsyncSession.
    The caller is responsible for commit/rollback.
    """

    def __init__(self, session: AsyncSession):
        self.session = session

    # =========================================================================
    # INITIATE
    # =========================================================================

    async def initiate(
        self,
        user: User,
        tx_type: TransactionType,
        amount,
        provider: str,
        phone: str,
        ) -> Transaction:
        """
        Record a PENDING transaction. The balance is not touched.

        Args:
            user: Owner; for withdrawals its loaded balance is the upper bound
            tx_type: DEPOSIT or WITHDRAWAL
            amount: Positive amount (truncated to 2 decimals)
            provider: Provider code (see MobileMoneyProviderRegistry)
            phone: Mobile-money phone number

        Returns:
            The flushed Transaction (id and reference set)

        Raises:
            InvalidAmountError: amount missing, not a number or <= 0
            UnknownProviderError: provider code not registered
            TransactionValidationError: empty phone number
            InsufficientBalanceError: withdrawal above user.balance
        """
        tx_type = TransactionType(tx_type)

        try:
            amount = truncate_amount(to_decimal(amount))
        except ValueError as e:
            raise InvalidAmountError(str(e)) from e
        if amount <= 0:
            raise InvalidAmountError("Amount must be greater than zero")

        provider_name = MobileMoneyProviderRegistry.resolve_name(provider)
        if provider_name is None:
            raise UnknownProviderError(provider)

        phone = (phone or "").strip()
        if not phone:
            raise TransactionValidationError("Phone number is required")

        if tx_type == TransactionType.WITHDRAWAL and amount > user.balance:
            logger.info(
                "Withdrawal rejected: insufficient balance",
                user_id=user.id,
                amount=str(amount),
                balance=str(user.balance),
                )
            raise InsufficientBalanceError(amount, user.balance)

        now = utcnow()
        tx = Transaction(
            user_id=user.id,
            type=tx_type,
            amount=amount,
            provider=provider_name,
            phone=phone,
            status=TransactionStatus.PENDING,
            reference=generate_reference(),
            created_at=now,
            updated_at=now,
            )
        self.session.add(tx)
        await self.session.flush()

        logger.info(
            "Transaction initiated",
            transaction_id=tx.id,
            reference=tx.reference,
            user_id=user.id,
            type=tx_type.value,
            amount=str(amount),
            provider=provider_name,
            )
        return tx

    # =========================================================================
    # SETTLE
    # =========================================================================

    async def settle(self, transaction_id: str) -> Transaction:
        """
        Finalize a PENDING transaction.

        Deposits always complete. Withdrawals complete when the balance at
        settlement time covers them; otherwise the transaction fails with
        INSUFFICIENT_BALANCE and the balance is left as is.

        Raises:
            TransactionNotFoundError: unknown id
            InvalidStatusTransitionError: not PENDING (already settled)
        """
        tx = await self.session.get(Transaction, transaction_id, populate_existing=True)
        if tx is None:
            raise TransactionNotFoundError(transaction_id)
        if tx.status != TransactionStatus.PENDING:
            raise InvalidStatusTransitionError(transaction_id, tx.status)

        applied = await self._apply_balance_delta(tx.user_id, balance_delta(tx.type, tx.amount))

        # Reload so the identity map reflects the bulk UPDATE
        user = await self.session.get(User, tx.user_id, populate_existing=True)

        if applied:
            new_status, reason = TransactionStatus.COMPLETED, None
        elif user is None:
            new_status, reason = TransactionStatus.FAILED, FailureReason.USER_NOT_FOUND
        else:
            new_status, reason = TransactionStatus.FAILED, FailureReason.INSUFFICIENT_BALANCE

        if not await self._transition(transaction_id, new_status, reason):
            # Settled concurrently; the caller's rollback undoes our balance change
            current = await self.session.get(Transaction, transaction_id, populate_existing=True)
            raise InvalidStatusTransitionError(transaction_id, current.status if current else None)

        await self.session.refresh(tx)

        log = logger.info if new_status == TransactionStatus.COMPLETED else logger.warning
        log(
            "Transaction settled",
            transaction_id=tx.id,
            reference=tx.reference,
            status=new_status.value,
            failure_reason=reason.value if reason else None,
            balance=str(user.balance) if user is not None else None,
            )
        return tx

    async def mark_failed(self, transaction_id: str, reason: FailureReason = FailureReason.STORE_ERROR) -> bool:
        """
        Move a PENDING transaction to FAILED without touching the balance.

        Returns:
            True if the transaction transitioned, False if it was not PENDING (or missing)
        """
        changed = await self._transition(transaction_id, TransactionStatus.FAILED, reason)
        if changed:
            tx = await self.session.get(Transaction, transaction_id, populate_existing=True)
            logger.warning(
                "Transaction marked failed",
                transaction_id=transaction_id,
                reference=tx.reference if tx else None,
                failure_reason=reason.value,
                )
        return changed

    async def _apply_balance_delta(self, user_id: str, delta: Decimal) -> bool:
        """Atomically add delta to the balance unless it would go negative."""
        new_balance = func.round(User.balance + delta, BALANCE_SCALE)
        stmt = (
            update(User)
            .where(User.id == user_id, new_balance >= 0)
            .values(balance=new_balance, updated_at=utcnow())
            .execution_options(synchronize_session=False)
        )
        result = await self.session.execute(stmt)
        return result.rowcount == 1

    async def _transition(
        self,
        transaction_id: str,
        new_status: TransactionStatus,
        reason: Optional[FailureReason],
        ) -> bool:
        """Compare-and-swap PENDING -> new_status."""
        stmt = (
            update(Transaction)
            .where(Transaction.id == transaction_id, Transaction.status == TransactionStatus.PENDING)
            .values(status=new_status, failure_reason=reason, updated_at=utcnow())
            .execution_options(synchronize_session=False)
        )
        result = await self.session.execute(stmt)
        return result.rowcount == 1

    # =========================================================================
    # READ
    # =========================================================================

    async def get_transaction(self, transaction_id: str, user_id: Optional[str] = None) -> Optional[Transaction]:
        """
        Fetch one transaction, optionally scoped to its owner.

        Returns:
            Transaction or None (also None when owned by another user)
        """
        stmt = select(Transaction).where(Transaction.id == transaction_id)
        if user_id is not None:
            stmt = stmt.where(Transaction.user_id == user_id)
        result = await self.session.execute(stmt.execution_options(populate_existing=True))
        return result.scalars().first()

    async def list_user_transactions(
        self,
        user_id: str,
        tx_type: Optional[TransactionType] = None,
        status: Optional[TransactionStatus] = None,
        limit: Optional[int] = None,
        ) -> List[Transaction]:
        """
        Transaction history of a user, newest first.
        """
        stmt = select(Transaction).where(Transaction.user_id == user_id)
        if tx_type is not None:
            stmt = stmt.where(Transaction.type == tx_type)
        if status is not None:
            stmt = stmt.where(Transaction.status == status)
        stmt = stmt.order_by(Transaction.created_at.desc())
        if limit is not None:
            stmt = stmt.limit(limit)

        result = await self.session.execute(stmt.execution_options(populate_existing=True))
        return list(result.scalars().all())
