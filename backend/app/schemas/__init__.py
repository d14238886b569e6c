"""
Pydantic schemas for the MoMo Wallet backend.

**Organization by Domain**:
- auth.py: Sign-up, sign-in and profile schemas
- transactions.py: Deposit/withdrawal requests, history items, balance, providers (TX prefix)
"""
from backend.app.schemas.auth import (
    AuthLoginRequest,
    AuthLoginResponse,
    AuthLogoutResponse,
    AuthMeResponse,
    AuthRegisterRequest,
    AuthRegisterResponse,
    AuthUserResponse,
    )
from backend.app.schemas.transactions import (
    ProviderInfo,
    TXInitiateRequest,
    TXReadItem,
    WalletBalanceResponse,
    )

__all__ = [
    "AuthLoginRequest",
    "AuthLoginResponse",
    "AuthLogoutResponse",
    "AuthMeResponse",
    "AuthRegisterRequest",
    "AuthRegisterResponse",
    "AuthUserResponse",
    "ProviderInfo",
    "TXInitiateRequest",
    "TXReadItem",
    "WalletBalanceResponse",
    ]
