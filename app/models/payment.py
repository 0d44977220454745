"""
Payment model for subscription payment tracking.
"""

import uuid
from datetime import datetime

from sqlmodel import Field, SQLModel

from ..core.constants import PaymentStatus


class Payment(SQLModel, table=True):
    """
    Payment reported against a subscription.

    Fields:
    - id: Auto-increment primary key
    - subscription_id: subscription being paid (required)
    - amount / currency: numeric amount and its currency
    - date: calendar date the payment is attributed to ('YYYY-MM-DD')
    - billing_cycle: subscription cut_date when the payment was created;
      the monthly cap is enforced per cycle
    - method: PaymentMethod; each method has its own required fields
    - status: pending -> verified | rejected, rejected -> pending
    """

    __tablename__ = "payments"

    id: int | None = Field(default=None, primary_key=True)
    subscription_id: uuid.UUID = Field(nullable=False, index=True)
    amount: float = Field(nullable=False)
    currency: str = Field(default="USD", nullable=False)
    date: str = Field(nullable=False)
    billing_cycle: str | None = Field(default=None, index=True)
    method: str = Field(nullable=False, index=True)
    status: str = Field(default=PaymentStatus.PENDING.value, nullable=False, index=True)
    reference: str | None = Field(default=None)
    payer_email: str | None = Field(default=None)
    payer_phone: str | None = Field(default=None)
    payer_id_number: str | None = Field(default=None)
    bank: str | None = Field(default=None)
    receipt_url: str | None = Field(default=None)
    free: bool | None = Field(default=None)
    created_at: datetime = Field(default_factory=datetime.utcnow)
    created_by: str = Field(nullable=False, index=True)
    verified_at: datetime | None = Field(default=None)
    verified_by: str | None = Field(default=None)
    notes: str | None = Field(default=None)
