"""
Tests for TransactionService.

Covers initiation checks, settlement outcomes and history queries.
Each test runs in its own session that is rolled back at the end.

Reference: backend/app/services/transaction_service.py
"""
import re
import sys
from datetime import timedelta
from decimal import Decimal
from pathlib import Path

import pytest
import pytest_asyncio

# Add project root to path
PROJECT_ROOT = Path(__file__).parent.parent.parent.parent
sys.path.insert(0, str(PROJECT_ROOT))

# Setup test database BEFORE importing app modules
from backend.test_scripts.test_db_config import setup_test_database

setup_test_database()

from sqlalchemy.ext.asyncio import AsyncSession

from backend.app.db.models import (
    FailureReason,
    Transaction,
    TransactionStatus,
    TransactionType,
    User,
    )
from backend.app.db.session import get_async_engine
from backend.app.services.auth_service import hash_password
from backend.app.services.transaction_service import (
    InsufficientBalanceError,
    InvalidAmountError,
    InvalidStatusTransitionError,
    TransactionNotFoundError,
    TransactionService,
    TransactionValidationError,
    UnknownProviderError,
    balance_delta,
    generate_reference,
    )
from backend.app.utils.datetime_utils import utcnow
from backend.test_scripts.test_utils import unique_email


# ============================================================================
# PYTEST FIXTURES
# ============================================================================

@pytest.fixture(scope="module")
def engine():
    """Get async engine."""
    return get_async_engine()


@pytest_asyncio.fixture
async def session(engine):
    """Create a fresh session for each test with rollback."""
    async with AsyncSession(engine, expire_on_commit=False) as session:
        yield session
        await session.rollback()


@pytest_asyncio.fixture
async def service(session) -> TransactionService:
    return TransactionService(session)


async def _make_user(session: AsyncSession, balance: str = "0.00") -> User:
    user = User(
        email=unique_email("tx"),
        full_name="Test User",
        phone="0241234567",
        hashed_password=hash_password("password123", rounds=4),
        balance=Decimal(balance),
        )
    session.add(user)
    await session.flush()
    return user


@pytest_asyncio.fixture
async def empty_user(session) -> User:
    return await _make_user(session)


@pytest_asyncio.fixture
async def funded_user(session) -> User:
    return await _make_user(session, "1250.50")


# ============================================================================
# HELPERS
# ============================================================================

def test_reference_format():
    reference = generate_reference()
    assert re.fullmatch(r"TXN\d{13}[0-9A-Z]{9}", reference), reference


def test_references_are_unique():
    references = {generate_reference() for _ in range(500)}
    assert len(references) == 500


def test_balance_delta_sign():
    assert balance_delta(TransactionType.DEPOSIT, Decimal("10")) == Decimal("10")
    assert balance_delta(TransactionType.WITHDRAWAL, Decimal("10")) == Decimal("-10")


# ============================================================================
# INITIATE
# ============================================================================

class TestInitiate:

    @pytest.mark.asyncio
    async def test_deposit_is_pending_and_balance_untouched(self, service, empty_user):
        tx = await service.initiate(empty_user, TransactionType.DEPOSIT, "100", "mtn", "0241234567")

        assert tx.id is not None
        assert tx.status == TransactionStatus.PENDING
        assert tx.amount == Decimal("100.00")
        assert tx.provider == "MTN Mobile Money"
        assert tx.reference.startswith("TXN")
        assert tx.failure_reason is None
        assert empty_user.balance == Decimal("0.00")

    @pytest.mark.asyncio
    async def test_amount_truncated_to_cents(self, service, empty_user):
        tx = await service.initiate(empty_user, TransactionType.DEPOSIT, "10.129", "telecel", "0201234567")
        assert tx.amount == Decimal("10.12")

    @pytest.mark.asyncio
    @pytest.mark.parametrize("amount", [0, -5, "0.004", "abc", None, "NaN", "1e17", "1e30"])
    async def test_invalid_amount(self, service, empty_user, amount):
        with pytest.raises(InvalidAmountError):
            await service.initiate(empty_user, TransactionType.DEPOSIT, amount, "mtn", "0241234567")

    @pytest.mark.asyncio
    async def test_unknown_provider(self, service, empty_user):
        with pytest.raises(UnknownProviderError) as exc:
            await service.initiate(empty_user, TransactionType.DEPOSIT, 10, "bank-of-nowhere", "0241234567")
        assert exc.value.provider == "bank-of-nowhere"

    @pytest.mark.asyncio
    async def test_phone_required(self, service, empty_user):
        with pytest.raises(TransactionValidationError):
            await service.initiate(empty_user, TransactionType.DEPOSIT, 10, "mtn", "   ")

    @pytest.mark.asyncio
    async def test_withdrawal_above_balance_creates_nothing(self, service, funded_user):
        with pytest.raises(InsufficientBalanceError) as exc:
            await service.initiate(funded_user, TransactionType.WITHDRAWAL, "1250.51", "mtn", "0241234567")

        assert str(exc.value) == "Insufficient balance"
        assert exc.value.available == Decimal("1250.50")
        assert await service.list_user_transactions(funded_user.id) == []

    @pytest.mark.asyncio
    async def test_withdrawal_of_whole_balance_allowed(self, service, funded_user):
        tx = await service.initiate(funded_user, TransactionType.WITHDRAWAL, "1250.50", "mtn", "0241234567")
        assert tx.status == TransactionStatus.PENDING


# ============================================================================
# SETTLE
# ============================================================================

class TestSettle:

    @pytest.mark.asyncio
    async def test_deposit_completes_and_credits(self, service, session, empty_user):
        tx = await service.initiate(empty_user, TransactionType.DEPOSIT, "75.25", "airteltigo", "0271234567")

        settled = await service.settle(tx.id)

        assert settled.status == TransactionStatus.COMPLETED
        assert settled.failure_reason is None
        user = await session.get(User, empty_user.id, populate_existing=True)
        assert user.balance == Decimal("75.25")

    @pytest.mark.asyncio
    async def test_withdrawal_scenario(self, service, session, funded_user):
        """1250.50 - 200 via MTN = 1050.50, transaction completed."""
        tx = await service.initiate(funded_user, TransactionType.WITHDRAWAL, 200, "mtn", "0241234567")

        settled = await service.settle(tx.id)

        assert settled.status == TransactionStatus.COMPLETED
        user = await session.get(User, funded_user.id, populate_existing=True)
        assert user.balance == Decimal("1050.50")

    @pytest.mark.asyncio
    async def test_withdrawal_fails_when_balance_dropped(self, service, session):
        user = await _make_user(session, "100.00")
        first = await service.initiate(user, TransactionType.WITHDRAWAL, 80, "mtn", "0241234567")
        second = await service.initiate(user, TransactionType.WITHDRAWAL, 80, "mtn", "0241234567")

        assert (await service.settle(first.id)).status == TransactionStatus.COMPLETED
        failed = await service.settle(second.id)

        assert failed.status == TransactionStatus.FAILED
        assert failed.failure_reason == FailureReason.INSUFFICIENT_BALANCE
        user = await session.get(User, user.id, populate_existing=True)
        assert user.balance == Decimal("20.00")

    @pytest.mark.asyncio
    async def test_cent_amounts_settle_exactly(self, service, session, empty_user):
        """0.30 in, 0.10 out, then the remaining 0.20 out leaves exactly zero."""
        steps = [
            (TransactionType.DEPOSIT, "0.30", "0.30"),
            (TransactionType.WITHDRAWAL, "0.10", "0.20"),
            (TransactionType.WITHDRAWAL, "0.20", "0.00"),
            ]
        for tx_type, amount, expected_balance in steps:
            user = await session.get(User, empty_user.id, populate_existing=True)
            tx = await service.initiate(user, tx_type, amount, "mtn", "0241234567")

            settled = await service.settle(tx.id)

            assert settled.status == TransactionStatus.COMPLETED, (tx_type, amount, settled.failure_reason)
            user = await session.get(User, empty_user.id, populate_existing=True)
            assert user.balance == Decimal(expected_balance)

    @pytest.mark.asyncio
    async def test_repeated_small_settlements_do_not_drift(self, service, session, empty_user):
        for _ in range(10):
            tx = await service.initiate(empty_user, TransactionType.DEPOSIT, "0.10", "mtn", "0241234567")
            await service.settle(tx.id)
        user = await session.get(User, empty_user.id, populate_existing=True)
        assert user.balance == Decimal("1.00")

        tx = await service.initiate(user, TransactionType.WITHDRAWAL, "1.00", "mtn", "0241234567")
        assert (await service.settle(tx.id)).status == TransactionStatus.COMPLETED
        user = await session.get(User, empty_user.id, populate_existing=True)
        assert user.balance == Decimal("0.00")

    @pytest.mark.asyncio
    async def test_settle_twice_rejected(self, service, session, empty_user):
        tx = await service.initiate(empty_user, TransactionType.DEPOSIT, 10, "mtn", "0241234567")
        await service.settle(tx.id)

        with pytest.raises(InvalidStatusTransitionError) as exc:
            await service.settle(tx.id)

        assert exc.value.current == TransactionStatus.COMPLETED
        user = await session.get(User, empty_user.id, populate_existing=True)
        assert user.balance == Decimal("10.00")

    @pytest.mark.asyncio
    async def test_settle_unknown_id(self, service):
        with pytest.raises(TransactionNotFoundError):
            await service.settle("does-not-exist")

    @pytest.mark.asyncio
    async def test_mark_failed_only_from_pending(self, service, session, empty_user):
        tx = await service.initiate(empty_user, TransactionType.DEPOSIT, 10, "mtn", "0241234567")

        assert await service.mark_failed(tx.id) is True
        assert await service.mark_failed(tx.id) is False

        stored = await session.get(Transaction, tx.id, populate_existing=True)
        assert stored.status == TransactionStatus.FAILED
        assert stored.failure_reason == FailureReason.STORE_ERROR
        user = await session.get(User, empty_user.id, populate_existing=True)
        assert user.balance == Decimal("0.00")


# ============================================================================
# READ
# ============================================================================

class TestHistory:

    @pytest.mark.asyncio
    async def test_newest_first(self, service, session, funded_user):
        base = utcnow()
        created = []
        for i, tx_type in enumerate([TransactionType.DEPOSIT, TransactionType.WITHDRAWAL, TransactionType.DEPOSIT]):
            tx = await service.initiate(funded_user, tx_type, 10 + i, "mtn", "0241234567")
            tx.created_at = base + timedelta(seconds=i)
            created.append(tx)
        await session.flush()

        history = await service.list_user_transactions(funded_user.id)

        assert [tx.id for tx in history] == [tx.id for tx in reversed(created)]

    @pytest.mark.asyncio
    async def test_filters_and_limit(self, service, funded_user):
        await service.initiate(funded_user, TransactionType.DEPOSIT, 10, "mtn", "0241234567")
        await service.initiate(funded_user, TransactionType.DEPOSIT, 20, "mtn", "0241234567")
        withdrawal = await service.initiate(funded_user, TransactionType.WITHDRAWAL, 5, "mtn", "0241234567")
        await service.settle(withdrawal.id)

        deposits = await service.list_user_transactions(funded_user.id, tx_type=TransactionType.DEPOSIT)
        completed = await service.list_user_transactions(funded_user.id, status=TransactionStatus.COMPLETED)
        limited = await service.list_user_transactions(funded_user.id, limit=1)

        assert len(deposits) == 2
        assert [tx.id for tx in completed] == [withdrawal.id]
        assert len(limited) == 1

    @pytest.mark.asyncio
    async def test_get_transaction_scoped_to_owner(self, service, session, funded_user):
        other = await _make_user(session)
        tx = await service.initiate(funded_user, TransactionType.DEPOSIT, 10, "mtn", "0241234567")

        assert (await service.get_transaction(tx.id)).id == tx.id
        assert (await service.get_transaction(tx.id, user_id=funded_user.id)).id == tx.id
        assert await service.get_transaction(tx.id, user_id=other.id) is None
