from datetime import datetime
from decimal import Decimal
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


class WalletOut(BaseModel):
    vendor_id: str
    balance: Decimal
    currency: str
    total_earned: Decimal
    total_withdrawn: Decimal
    pending_withdrawals: Decimal
    pending_withdrawal_count: int
    available_for_withdrawal: Decimal
    transaction_count: int
    counts_by_type: dict[str, int]
    counts_by_status: dict[str, int]

    model_config = ConfigDict(from_attributes=True)


class TransactionOut(BaseModel):
    id: str
    created_at: Optional[datetime] = None
    vendor_id: str
    booking_id: Optional[str] = None
    amount: Decimal
    currency: str
    transaction_type: str
    status: str
    payment_method: Optional[str] = None
    reference: str

    model_config = ConfigDict(from_attributes=True)


class WithdrawalRequest(BaseModel):
    amount: Decimal = Field(..., gt=0)
    currency: Optional[str] = Field(default=None, max_length=8)
    payment_method: Optional[str] = Field(default=None, max_length=32)


class WithdrawalReviewRequest(BaseModel):
    approve: bool
