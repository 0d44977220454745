"""Identity schemas shared by the fastapi-users routers and /api/users."""
from .user import UserCreate, UserRead, UserUpdate

__all__ = ["UserCreate", "UserRead", "UserUpdate"]
