from datetime import datetime
from typing import Any, Dict, Optional

from pydantic import BaseModel, ConfigDict


class SendTemplateRequest(BaseModel):
    client_id: str
    template: str
    template_data: Optional[Dict[str, Any]] = None


class SendTextRequest(BaseModel):
    client_id: str
    body: str


class Message(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    client_id: str
    template: Optional[str] = None
    body: str
    to: str
    sender: Optional[str] = None
    direction: str
    status: str
    external_sid: Optional[str] = None
    error: Optional[str] = None
    created_at: datetime
    updated_at: datetime


class Conversation(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    phone: str
    client_id: Optional[str] = None
    name: Optional[str] = None
    last_message_at: Optional[datetime] = None
    last_message_body: Optional[str] = None
    last_message_dir: Optional[str] = None
    unread_count: int
    prospect: bool
