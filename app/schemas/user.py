# app/schemas/user.py
"""
Pydantic schemas for FastAPI Users.
These schemas control what data is sent/received via the API.
"""
import uuid
from typing import Optional

from fastapi_users import schemas

from ..core.constants import UserRole


class UserRead(schemas.BaseUser[uuid.UUID]):
    """
    Schema for reading user data (API responses).
    """

    username: str
    full_name: Optional[str] = None
    role: str
    disabled: bool


class UserCreate(schemas.BaseUserCreate):
    """
    Schema for creating new users.
    Public registration always yields a `client` account; other roles are
    assigned by an admin afterwards.
    """

    username: str
    email: str
    password: str
    full_name: Optional[str] = None


class UserUpdate(schemas.BaseUserUpdate):
    """
    Schema for updating existing users.
    All fields are optional.
    """

    username: Optional[str] = None
    email: Optional[str] = None
    password: Optional[str] = None
    full_name: Optional[str] = None
    role: Optional[UserRole] = None
    disabled: Optional[bool] = None
