"""
Database module exports.
"""
from backend.app.db.base import (
    SQLModel,
    # Enums
    TransactionType,
    TransactionStatus,
    FailureReason,
    # Models
    User,
    Transaction,
    )
from backend.app.db.session import get_sync_engine, get_async_engine, get_session_generator, create_schema

__all__ = [
    "SQLModel",
    "get_sync_engine",  # For sync scripts (schema creation, CLI checks)
    "get_async_engine",  # For async FastAPI app and settlement tasks
    "get_session_generator",
    "create_schema",
    # Enums
    "TransactionType",
    "TransactionStatus",
    "FailureReason",
    # Models
    "User",
    "Transaction",
    ]
