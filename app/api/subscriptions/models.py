import uuid
from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict

from ...core.constants import SubscriptionStatus


class SubscriptionBase(BaseModel):
    start_date: str
    cut_date: str
    plan: str
    amount: str
    kit_number: Optional[str] = None
    country: Optional[str] = None


class SubscriptionCreate(SubscriptionBase):
    # id, uid o teléfono del cliente
    client_id: str


class SubscriptionUpdate(BaseModel):
    start_date: Optional[str] = None
    cut_date: Optional[str] = None
    plan: Optional[str] = None
    amount: Optional[str] = None
    status: Optional[SubscriptionStatus] = None
    kit_number: Optional[str] = None
    country: Optional[str] = None


class Subscription(SubscriptionBase):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    client_id: str
    status: str
    created_at: datetime
    updated_at: datetime
