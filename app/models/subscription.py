"""
Subscription model for recurring monthly billing.
"""
import uuid
from datetime import datetime
from typing import Optional

from sqlmodel import Field, SQLModel

from ..core.constants import SubscriptionStatus


class Subscription(SQLModel, table=True):
    """
    Subscription of a client to a plan.

    Fields:
    - client_id: id of the owning client (validated on creation, not a FK)
    - start_date / cut_date: calendar dates as ISO strings 'YYYY-MM-DD'.
      cut_date anchors every billing-cycle decision and is matched by exact
      string equality, so it must always be written in that format.
    - plan: free-text label
    - amount: money string such as "$50"; parse with app.utils.money
    - status: one of SubscriptionStatus
    """

    __tablename__ = "subscriptions"

    id: uuid.UUID = Field(default_factory=uuid.uuid4, primary_key=True)
    client_id: str = Field(nullable=False, index=True)
    start_date: str = Field(nullable=False)
    cut_date: str = Field(nullable=False, index=True)
    plan: str = Field(nullable=False)
    amount: str = Field(nullable=False)
    status: str = Field(default=SubscriptionStatus.ACTIVE.value, nullable=False, index=True)
    kit_number: Optional[str] = Field(default=None)
    country: Optional[str] = Field(default=None)
    created_at: datetime = Field(default_factory=datetime.utcnow)
    updated_at: datetime = Field(default_factory=datetime.utcnow)
