"""
Transaction API endpoints for the MoMo Wallet backend.

Provides the deposit/withdrawal flow and history:
- POST /transactions/deposit: Start a deposit (PENDING, settled later)
- POST /transactions/withdraw: Start a withdrawal (PENDING, settled later)
- GET /transactions: History of the current user, newest first
- GET /transactions/{id}: Single transaction of the current user
- POST /transactions/{id}/settle: Settle now instead of waiting for the delay
"""
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Request
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from backend.app.api.v1.auth import get_current_user
from backend.app.db.models import TransactionStatus, TransactionType, User
from backend.app.db.session import get_session_generator
from backend.app.logging_config import get_logger
from backend.app.schemas.transactions import TXInitiateRequest, TXReadItem
from backend.app.services.settlement import SettlementManager
from backend.app.services.transaction_service import (
    TransactionService,
    TransactionValidationError,
    )

logger = get_logger(__name__)

tx_router = APIRouter(prefix="/transactions", tags=["TX (Transactions)"])


def get_settlement_manager(request: Request) -> SettlementManager:
    """Dependency returning the process-wide SettlementManager."""
    return request.app.state.settlement_manager


async def _initiate(
    tx_type: TransactionType,
    item: TXInitiateRequest,
    user: User,
    session: AsyncSession,
    settlements: SettlementManager,
    ) -> TXReadItem:
    """Create the PENDING row, commit it, then schedule its settlement."""
    service = TransactionService(session)
    try:
        tx = await service.initiate(user, tx_type, item.amount, item.provider, item.phone)
        await session.commit()
    except TransactionValidationError as e:
        await session.rollback()
        raise HTTPException(status_code=400, detail=str(e))
    except SQLAlchemyError as e:
        await session.rollback()
        logger.error("Transaction creation failed", user_id=user.id, type=tx_type.value, error=str(e))
        raise HTTPException(status_code=500, detail="Transaction could not be created")

    settlements.schedule(tx.id)
    return TXReadItem.model_validate(tx)


# =============================================================================
# CREATE
# =============================================================================

@tx_router.post("/deposit", response_model=TXReadItem, status_code=201)
async def create_deposit(
    item: TXInitiateRequest,
    current_user: User = Depends(get_current_user),
    session: AsyncSession = Depends(get_session_generator),
    settlements: SettlementManager = Depends(get_settlement_manager),
    ) -> TXReadItem:
    """
    Deposit money from a mobile-money account into the wallet.

    The transaction is returned PENDING; the balance changes when it settles.
    """
    return await _initiate(TransactionType.DEPOSIT, item, current_user, session, settlements)


@tx_router.post("/withdraw", response_model=TXReadItem, status_code=201)
async def create_withdrawal(
    item: TXInitiateRequest,
    current_user: User = Depends(get_current_user),
    session: AsyncSession = Depends(get_session_generator),
    settlements: SettlementManager = Depends(get_settlement_manager),
    ) -> TXReadItem:
    """
    Withdraw money from the wallet to a mobile-money account.

    Rejected with 400 when the amount exceeds the current balance.
    """
    return await _initiate(TransactionType.WITHDRAWAL, item, current_user, session, settlements)


# =============================================================================
# READ
# =============================================================================

@tx_router.get("", response_model=List[TXReadItem])
async def list_transactions(
    type: Optional[TransactionType] = Query(None, description="Filter by type"),
    status: Optional[TransactionStatus] = Query(None, description="Filter by status"),
    limit: Optional[int] = Query(None, ge=1, le=500, description="Max number of rows"),
    current_user: User = Depends(get_current_user),
    session: AsyncSession = Depends(get_session_generator),
    ) -> List[TXReadItem]:
    """Transaction history of the current user, newest first."""
    service = TransactionService(session)
    txs = await service.list_user_transactions(current_user.id, tx_type=type, status=status, limit=limit)
    return [TXReadItem.model_validate(tx) for tx in txs]


@tx_router.get("/{transaction_id}", response_model=TXReadItem)
async def get_transaction(
    transaction_id: str,
    current_user: User = Depends(get_current_user),
    session: AsyncSession = Depends(get_session_generator),
    ) -> TXReadItem:
    """Single transaction; 404 if missing or owned by someone else."""
    tx = await TransactionService(session).get_transaction(transaction_id, user_id=current_user.id)
    if tx is None:
        raise HTTPException(status_code=404, detail=f"Transaction {transaction_id} not found")
    return TXReadItem.model_validate(tx)


# =============================================================================
# SETTLE
# =============================================================================

@tx_router.post("/{transaction_id}/settle", response_model=TXReadItem)
async def settle_transaction(
    transaction_id: str,
    current_user: User = Depends(get_current_user),
    session: AsyncSession = Depends(get_session_generator),
    settlements: SettlementManager = Depends(get_settlement_manager),
    ) -> TXReadItem:
    """
    Settle a PENDING transaction right away.

    Already settled transactions are returned unchanged.
    """
    service = TransactionService(session)
    tx = await service.get_transaction(transaction_id, user_id=current_user.id)
    if tx is None:
        raise HTTPException(status_code=404, detail=f"Transaction {transaction_id} not found")

    if tx.status == TransactionStatus.PENDING:
        status = await settlements.settle_now(transaction_id)
        logger.info("Settlement forced", transaction_id=transaction_id, status=status.value if status else None)
        tx = await service.get_transaction(transaction_id, user_id=current_user.id)

    return TXReadItem.model_validate(tx)
