from decimal import Decimal
from typing import Optional

from pydantic import BaseModel


class PaymentStatusOut(BaseModel):
    reference: str
    status: str
    payment_id: str
    order_id: Optional[str] = None
    amount: Decimal


class WebhookAck(BaseModel):
    success: bool
    reference: Optional[str] = None
    status: Optional[str] = None
    message: Optional[str] = None
    error: Optional[str] = None
