"""
Database models for the MoMo Wallet backend.

All models use SQLModel (SQLAlchemy 2.x) with the following conventions:
- Money columns use Numeric(18, 2)
- Primary keys are UUID4 strings
- Timestamps in UTC (created_at, updated_at)
- Foreign keys enforced with PRAGMA foreign_keys=ON
"""
import uuid
from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Optional

from sqlalchemy import (
    CheckConstraint,
    Column,
    Index,
    Numeric,
    event,
    )
from sqlmodel import Field, SQLModel

from backend.app.utils.datetime_utils import utcnow


def new_uuid() -> str:
    """Primary key factory."""
    return str(uuid.uuid4())


# ============================================================================
# ENUMS
# ============================================================================

class TransactionType(str, Enum):
    """
    Wallet transaction types.

    - DEPOSIT: Money pulled from a mobile-money account into the wallet
      Effect on settlement: ↑ balance
    - WITHDRAWAL: Money pushed from the wallet to a mobile-money account
      Effect on settlement: ↓ balance (never below zero)
    """
    DEPOSIT = "deposit"
    WITHDRAWAL = "withdrawal"


class TransactionStatus(str, Enum):
    """
    Transaction lifecycle.

    PENDING -> COMPLETED
    PENDING -> FAILED

    COMPLETED and FAILED are terminal: a transaction is settled exactly once.
    """
    PENDING = "pending"
    COMPLETED = "completed"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self is not TransactionStatus.PENDING


class FailureReason(str, Enum):
    """Why a transaction ended in FAILED."""
    INSUFFICIENT_BALANCE = "insufficient_balance"
    USER_NOT_FOUND = "user_not_found"
    STORE_ERROR = "store_error"


# ============================================================================
# MODELS
# ============================================================================

class User(SQLModel, table=True):
    """
    Wallet owner.

    The balance starts at 0 and is only changed by transaction settlement.
    """
    __tablename__ = "users"
    __table_args__ = (
        CheckConstraint("balance >= 0", name="ck_users_balance_non_negative"),
        )

    id: str = Field(default_factory=new_uuid, primary_key=True)
    email: str = Field(unique=True, index=True, nullable=False)
    full_name: str = Field(nullable=False)
    phone: str = Field(nullable=False)
    hashed_password: str = Field(nullable=False)

    balance: Decimal = Field(
        default=Decimal("0.00"),
        sa_column=Column(Numeric(18, 2), nullable=False, default=Decimal("0.00")),
        )

    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)


class Transaction(SQLModel, table=True):
    """
    Deposit or withdrawal between the wallet and a mobile-money provider.

    Created PENDING with no effect on the balance; settlement moves it to
    COMPLETED (balance updated) or FAILED (balance untouched).

    `reference` is the user-facing identifier, distinct from `id`.
    `provider` holds the provider display name (e.g. "MTN Mobile Money").
    """
    __tablename__ = "transactions"
    __table_args__ = (
        Index("idx_transactions_user_created", "user_id", "created_at"),
        CheckConstraint("amount > 0", name="ck_transactions_amount_positive"),
        )

    id: str = Field(default_factory=new_uuid, primary_key=True)
    user_id: str = Field(foreign_key="users.id", nullable=False, index=True)
    type: TransactionType = Field(nullable=False)

    amount: Decimal = Field(sa_column=Column(Numeric(18, 2), nullable=False))
    provider: str = Field(nullable=False)
    phone: str = Field(nullable=False)

    status: TransactionStatus = Field(default=TransactionStatus.PENDING, nullable=False, index=True)
    reference: str = Field(unique=True, index=True, nullable=False)
    failure_reason: Optional[FailureReason] = Field(default=None)

    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)


# ============================================================================
# EVENT LISTENERS
# ============================================================================


@event.listens_for(User, "before_update")
@event.listens_for(Transaction, "before_update")
def receive_before_update(mapper, connection, target):
    """Update updated_at timestamp on update."""
    target.updated_at = utcnow()
