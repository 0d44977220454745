from datetime import datetime
from typing import Optional

from sqlmodel import Field, SQLModel


class Conversation(SQLModel, table=True):
    """WhatsApp conversation keyed by the contact's phone number (E.164)."""

    __tablename__ = "conversations"

    phone: str = Field(primary_key=True)
    client_id: Optional[str] = Field(default=None, index=True)
    name: Optional[str] = Field(default=None)
    last_message_at: Optional[datetime] = Field(default=None, index=True)
    last_message_body: Optional[str] = Field(default=None)
    last_message_dir: Optional[str] = Field(default=None)
    unread_count: int = Field(default=0)
    prospect: bool = Field(default=True)
