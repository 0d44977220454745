"""
WhatsApp message log.
"""
from datetime import datetime
from typing import Optional

from sqlmodel import Field, SQLModel


class Message(SQLModel, table=True):
    """Inbound or outbound message. client_id is "unknown" for unmatched senders."""

    __tablename__ = "messages"

    id: Optional[int] = Field(default=None, primary_key=True)
    client_id: str = Field(nullable=False, index=True)
    template: Optional[str] = Field(default=None)
    body: str = Field(default="")
    to: str = Field(nullable=False)
    sender: Optional[str] = Field(default=None)
    direction: str = Field(nullable=False)
    status: str = Field(nullable=False)
    external_sid: Optional[str] = Field(default=None)
    error: Optional[str] = Field(default=None)
    created_at: datetime = Field(default_factory=datetime.utcnow, index=True)
    updated_at: datetime = Field(default_factory=datetime.utcnow)
