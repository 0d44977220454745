import uuid
from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, ConfigDict


class ClientBase(BaseModel):
    name: str
    phone: Optional[str] = None
    address: Optional[str] = None


class ClientCreate(ClientBase):
    uid: Optional[str] = None


class ClientUpdate(BaseModel):
    name: Optional[str] = None
    phone: Optional[str] = None
    address: Optional[str] = None
    uid: Optional[str] = None


class Client(ClientBase):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    uid: Optional[str] = None
    is_prospect: bool
    created_at: datetime
    updated_at: datetime


class CleanupError(BaseModel):
    action: str
    error: str


class ClientDeletion(BaseModel):
    deleted: List[str]
    cleanup_errors: List[CleanupError]
