"""
Transaction and wallet schemas (TX prefix).

Request/response DTOs for the deposit, withdrawal and history endpoints.
"""
from datetime import datetime
from decimal import Decimal
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from backend.app.db.models import FailureReason, TransactionStatus, TransactionType


class TXInitiateRequest(BaseModel):
    """
    Deposit or withdrawal request.

    The type comes from the endpoint (/deposit or /withdraw), not the body.
    """
    model_config = ConfigDict(str_strip_whitespace=True)

    amount: Decimal = Field(..., gt=0, description="Amount in wallet currency (max 2 decimals kept)")
    provider: str = Field(..., min_length=1, description="Provider code (see GET /providers)")
    phone: str = Field(..., min_length=7, max_length=20, description="Mobile-money phone number")

    @field_validator("phone")
    @classmethod
    def phone_digits(cls, v: str) -> str:
        digits = v[1:] if v.startswith("+") else v
        if not digits.replace(" ", "").isdigit():
            raise ValueError("Phone number may only contain digits, spaces and a leading +")
        return v


class TXReadItem(BaseModel):
    """Transaction as shown in history."""
    model_config = ConfigDict(from_attributes=True)

    id: str
    user_id: str
    type: TransactionType
    amount: Decimal
    provider: str
    phone: str
    status: TransactionStatus
    reference: str
    failure_reason: Optional[FailureReason] = None
    created_at: datetime
    updated_at: datetime


class WalletBalanceResponse(BaseModel):
    """Current balance of the signed-in user."""
    balance: Decimal
    currency: str


class ProviderInfo(BaseModel):
    """Mobile-money provider as listed by GET /providers."""
    code: str
    name: str
