"""
Wallet API endpoints.

- GET /wallet/balance: Balance of the current user
- GET /providers: Mobile-money providers accepted for deposits and withdrawals
"""
from typing import List

from fastapi import APIRouter, Depends

from backend.app.api.v1.auth import get_current_user
from backend.app.config import get_settings
from backend.app.db.models import User
from backend.app.schemas.transactions import ProviderInfo, WalletBalanceResponse
from backend.app.services.provider_registry import MobileMoneyProviderRegistry

wallet_router = APIRouter(prefix="/wallet", tags=["Wallet"])
providers_router = APIRouter(prefix="/providers", tags=["Providers"])


@wallet_router.get("/balance", response_model=WalletBalanceResponse)
async def get_balance(current_user: User = Depends(get_current_user)) -> WalletBalanceResponse:
    """Current balance; pending transactions are not included."""
    return WalletBalanceResponse(balance=current_user.balance, currency=get_settings().WALLET_CURRENCY)


@providers_router.get("", response_model=List[ProviderInfo])
async def list_providers() -> List[ProviderInfo]:
    """List registered mobile-money providers."""
    return [ProviderInfo(**p) for p in MobileMoneyProviderRegistry.list_providers()]
