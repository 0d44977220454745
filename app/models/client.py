"""
Client model for subscriber management.
"""
import uuid
from datetime import datetime
from typing import Optional

from sqlmodel import Field, SQLModel


class Client(SQLModel, table=True):
    """
    Client model representing subscribers (or prospects that wrote via WhatsApp).

    Fields:
    - id: UUID primary key (the "document id")
    - uid: identity-provider user id linked to this client
    - name: Client name (required)
    - phone: WhatsApp phone in E.164
    - address: Physical address
    - is_prospect: True while the client was only created from an inbound message
    - created_at / updated_at: timestamps
    """

    __tablename__ = "clients"

    id: uuid.UUID = Field(default_factory=uuid.uuid4, primary_key=True)
    uid: Optional[str] = Field(default=None, index=True)
    name: str = Field(nullable=False)
    phone: Optional[str] = Field(default=None, index=True)
    address: Optional[str] = Field(default=None)
    is_prospect: bool = Field(default=False)
    created_at: datetime = Field(default_factory=datetime.utcnow)
    updated_at: datetime = Field(default_factory=datetime.utcnow)
