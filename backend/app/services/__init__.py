"""
Services package.
Business logic behind the API and CLI.

- TransactionService: initiate, settle, history
- SettlementManager: delayed asynchronous settlement tasks
- SessionManager: sessions and auth-state listeners
- user_service: sign-up, sign-in, profile lookups
"""
from backend.app.services.auth_service import SessionManager, AuthIdentity, AuthSession
from backend.app.services.settlement import SettlementManager, SettlementHandle
from backend.app.services.transaction_service import (
    TransactionService,
    TransactionError,
    TransactionValidationError,
    InvalidAmountError,
    InsufficientBalanceError,
    UnknownProviderError,
    TransactionNotFoundError,
    InvalidStatusTransitionError,
    )

__all__ = [
    "SessionManager",
    "AuthIdentity",
    "AuthSession",
    "SettlementManager",
    "SettlementHandle",
    "TransactionService",
    "TransactionError",
    "TransactionValidationError",
    "InvalidAmountError",
    "InsufficientBalanceError",
    "UnknownProviderError",
    "TransactionNotFoundError",
    "InvalidStatusTransitionError",
    ]
