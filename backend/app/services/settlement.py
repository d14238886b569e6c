"""
Settlement scheduler.

Each PENDING transaction gets one asyncio task that waits the settlement delay
(the simulated provider confirmation) and then settles it in its own database
session. The task is exposed through a SettlementHandle so callers and tests can
await it, or expedite it to skip the remaining delay.

Failure policy: if settlement raises anything other than "not found" or
"already settled", the work is rolled back and the transaction is moved to
FAILED (failure_reason = store_error) in a fresh session. If even that fails the
transaction stays PENDING and the error is logged. Nothing is retried.

Tasks are never cancelled: shutdown calls drain(), which expedites and awaits
every outstanding settlement.
"""
from __future__ import annotations

import asyncio
from typing import Dict, Optional

from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession

from backend.app.db.models import FailureReason, Transaction, TransactionStatus
from backend.app.logging_config import get_logger
from backend.app.services.transaction_service import (
    InvalidStatusTransitionError,
    TransactionNotFoundError,
    TransactionService,
    )

logger = get_logger(__name__)


class SettlementHandle:
    """
    Handle on one scheduled settlement.

    Awaiting wait() yields the final TransactionStatus, or None when the
    transaction does not exist.
    """

    def __init__(self, transaction_id: str, delay_seconds: float):
        self.transaction_id = transaction_id
        self.delay_seconds = delay_seconds
        self._release = asyncio.Event()
        self.task: Optional[asyncio.Task] = None

    def expedite(self) -> None:
        """Skip whatever is left of the delay."""
        self._release.set()

    @property
    def done(self) -> bool:
        return self.task is not None and self.task.done()

    async def wait_for_release(self) -> None:
        if self.delay_seconds <= 0:
            return
        try:
            await asyncio.wait_for(self._release.wait(), timeout=self.delay_seconds)
        except asyncio.TimeoutError:
            pass

    async def wait(self) -> Optional[TransactionStatus]:
        return await asyncio.shield(self.task)


class SettlementManager:
    """
    Owns the settlement tasks of the process.

    Created at application start (app.state.settlement_manager) with the async
    engine used to open one session per settlement.
    """

    def __init__(self, engine: AsyncEngine, delay_seconds: float = 3.0):
        self.engine = engine
        self.delay_seconds = delay_seconds
        self._handles: Dict[str, SettlementHandle] = {}

    @property
    def pending_count(self) -> int:
        return len(self._handles)

    def get_handle(self, transaction_id: str) -> Optional[SettlementHandle]:
        return self._handles.get(transaction_id)

    def schedule(self, transaction_id: str, delay_seconds: Optional[float] = None) -> SettlementHandle:
        """
        Start the settlement task for a committed PENDING transaction.

        Scheduling an id that already has a live handle returns that handle.
        Must be called from a running event loop.
        """
        existing = self._handles.get(transaction_id)
        if existing is not None and not existing.done:
            return existing

        delay = self.delay_seconds if delay_seconds is None else delay_seconds
        handle = SettlementHandle(transaction_id, delay)
        handle.task = asyncio.get_running_loop().create_task(
            self._run(handle), name=f"settle-{transaction_id}"
            )
        self._handles[transaction_id] = handle
        handle.task.add_done_callback(lambda _task: self._forget(handle))

        logger.debug("Settlement scheduled", transaction_id=transaction_id, delay_seconds=delay)
        return handle

    def _forget(self, handle: SettlementHandle) -> None:
        if self._handles.get(handle.transaction_id) is handle:
            del self._handles[handle.transaction_id]

    async def settle_now(self, transaction_id: str) -> Optional[TransactionStatus]:
        """
        Settle immediately: expedite the scheduled task, or run one with no delay.

        Returns:
            Final status, or None if the transaction does not exist
        """
        handle = self._handles.get(transaction_id)
        if handle is None or handle.done:
            handle = self.schedule(transaction_id, delay_seconds=0)
        handle.expedite()
        return await handle.wait()

    async def drain(self) -> int:
        """
        Expedite and await every outstanding settlement.

        Returns:
            Number of settlements awaited
        """
        handles = list(self._handles.values())
        for handle in handles:
            handle.expedite()
        if handles:
            await asyncio.gather(*(h.task for h in handles), return_exceptions=True)
            logger.info("Settlements drained", count=len(handles))
        return len(handles)

    # -------------------------------------------------------------------------

    async def _run(self, handle: SettlementHandle) -> Optional[TransactionStatus]:
        await handle.wait_for_release()
        transaction_id = handle.transaction_id

        try:
            async with AsyncSession(self.engine, expire_on_commit=False) as session:
                try:
                    tx = await TransactionService(session).settle(transaction_id)
                    await session.commit()
                    return tx.status
                except (TransactionNotFoundError, InvalidStatusTransitionError) as e:
                    await session.rollback()
                    logger.warning("Settlement skipped", transaction_id=transaction_id, reason=str(e))
                    return getattr(e, "current", None)
                except Exception:
                    await session.rollback()
                    raise
        except Exception as e:
            logger.error(
                "Settlement failed",
                transaction_id=transaction_id,
                error=str(e),
                error_type=type(e).__name__,
                )
            return await self._fail(transaction_id)

    async def _fail(self, transaction_id: str) -> Optional[TransactionStatus]:
        """Best-effort PENDING -> FAILED after a settlement error."""
        try:
            async with AsyncSession(self.engine, expire_on_commit=False) as session:
                await TransactionService(session).mark_failed(transaction_id, FailureReason.STORE_ERROR)
                await session.commit()
                tx = await session.get(Transaction, transaction_id)
                return tx.status if tx else None
        except Exception as e:
            logger.error(
                "Could not mark transaction failed; it stays pending",
                transaction_id=transaction_id,
                error=str(e),
                )
            return TransactionStatus.PENDING
