# app/models/user.py
"""
User model for FastAPI Users with SQLModel.
This is the identity store: back-office staff and client accounts.
"""

import uuid as uuid_pkg

from sqlmodel import Field, SQLModel

from ..core.constants import UserRole


class User(SQLModel, table=True):
    """
    FastAPI Users authentication fields plus:
    - username: unique username for login
    - full_name: display name
    - role: UserRole (admin, staff, client, guest)
    """

    __tablename__ = "users"

    # FastAPI Users required fields
    id: uuid_pkg.UUID = Field(default_factory=uuid_pkg.uuid4, primary_key=True, nullable=False)
    email: str = Field(unique=True, index=True, nullable=False, max_length=320)
    hashed_password: str = Field(nullable=False, max_length=1024)
    is_active: bool = Field(default=True, nullable=False)
    is_superuser: bool = Field(default=False, nullable=False)
    is_verified: bool = Field(default=False, nullable=False)

    # Custom fields
    username: str = Field(index=True, unique=True, nullable=False, max_length=100)
    full_name: str | None = Field(default=None, max_length=200)
    role: str = Field(default=UserRole.CLIENT.value, max_length=50)

    @property
    def disabled(self) -> bool:
        return not self.is_active
