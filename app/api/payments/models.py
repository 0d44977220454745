import uuid
from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field

from ...core.constants import Currency, PaymentMethod, PaymentStatus


class PaymentCreate(BaseModel):
    subscription_id: uuid.UUID
    amount: float = Field(ge=0, le=1_000_000)
    currency: Optional[Currency] = None
    date: Optional[str] = None
    method: PaymentMethod
    reference: Optional[str] = None
    payer_email: Optional[str] = None
    payer_phone: Optional[str] = None
    payer_id_number: Optional[str] = None
    bank: Optional[str] = None
    receipt_url: Optional[str] = None
    free: Optional[bool] = None


class PaymentStatusUpdate(BaseModel):
    notes: Optional[str] = None


class Payment(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    subscription_id: uuid.UUID
    amount: float
    currency: str
    date: str
    billing_cycle: Optional[str] = None
    method: str
    status: str
    reference: Optional[str] = None
    payer_email: Optional[str] = None
    payer_phone: Optional[str] = None
    payer_id_number: Optional[str] = None
    bank: Optional[str] = None
    receipt_url: Optional[str] = None
    free: Optional[bool] = None
    created_at: datetime
    created_by: str
    verified_at: Optional[datetime] = None
    verified_by: Optional[str] = None
    notes: Optional[str] = None


class PaymentList(BaseModel):
    items: List[Payment]
    total: int
    page: int
    limit: int
    has_more: bool


class PaymentStats(BaseModel):
    total: int
    pending: int
    verified: int
    rejected: int
    total_amount: float


class PaymentFilters(BaseModel):
    subscription_id: Optional[uuid.UUID] = None
    status: Optional[PaymentStatus] = None
    method: Optional[PaymentMethod] = None
    created_by: Optional[str] = None
    start_date: Optional[str] = None
    end_date: Optional[str] = None
    page: int = Field(1, ge=1)
    limit: int = Field(20, ge=1, le=100)
