# app/core/users.py
"""
FastAPI Users configuration and authentication setup.
This is the identity provider for back-office staff and client accounts.
"""
import logging
import os
import uuid
from typing import Any, Optional

from fastapi import Depends, HTTPException, Request, status
from fastapi_users import BaseUserManager, FastAPIUsers, InvalidPasswordException, UUIDIDMixin
from fastapi_users.authentication import AuthenticationBackend, BearerTransport, JWTStrategy
from fastapi_users.db import SQLAlchemyUserDatabase
from fastapi_users.password import PasswordHelper
from passlib.context import CryptContext
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.constants import UserRole
from app.db.engine import get_session
from app.models.user import User

logger = logging.getLogger(__name__)

# --- Configuration ---
SECRET = os.getenv("SECRET_KEY")
if not SECRET:
    raise RuntimeError("FATAL: SECRET_KEY not configured in .env")

ACCESS_TOKEN_LIFETIME_SECONDS = 28800  # 8 horas
MIN_PASSWORD_LENGTH = 8

# --- Authentication Transport ---
bearer_transport = BearerTransport(tokenUrl="auth/jwt/login")


# --- JWT Strategy ---
def get_jwt_strategy() -> JWTStrategy:
    """Returns JWT strategy for token generation and validation"""
    return JWTStrategy(secret=SECRET, lifetime_seconds=ACCESS_TOKEN_LIFETIME_SECONDS)


auth_backend_jwt = AuthenticationBackend(
    name="jwt",
    transport=bearer_transport,
    get_strategy=get_jwt_strategy,
)


def check_password_policy(password: str, username: Optional[str] = None) -> None:
    """Reglas de contraseña compartidas por el registro público y /api/users."""
    if len(password or "") < MIN_PASSWORD_LENGTH:
        raise ValueError(f"La contraseña debe tener al menos {MIN_PASSWORD_LENGTH} caracteres.")
    if username and username.lower() in password.lower():
        raise ValueError("La contraseña no puede contener el nombre de usuario.")


# --- User Manager ---
class UserManager(UUIDIDMixin, BaseUserManager[User, uuid.UUID]):
    reset_password_token_secret = SECRET
    verification_token_secret = SECRET

    async def validate_password(self, password: str, user: Any) -> None:
        try:
            check_password_policy(password, getattr(user, "username", None))
        except ValueError as e:
            raise InvalidPasswordException(reason=str(e))

    async def on_after_register(self, user: User, request: Optional[Request] = None):
        logger.info(f"✅ Usuario registrado: {user.username} ({user.email}) rol={user.role}")

    async def on_after_login(self, user: User, request: Optional[Request] = None, response=None):
        logger.info(f"🔐 Inicio de sesión: {user.username}")

    async def on_after_forgot_password(
        self, user: User, token: str, request: Optional[Request] = None
    ):
        logger.info(f"🔑 Restablecimiento de contraseña solicitado para: {user.username}")


# --- Custom User Database Adapter (Username-based lookup) ---
class SQLAlchemyUserDatabaseByUsername(SQLAlchemyUserDatabase):
    """
    Looks users up by username instead of email, so the login form's
    'username' field is the username.
    """

    async def get_by_email(self, email: str) -> Optional[User]:
        statement = select(self.user_table).where(self.user_table.username == email)
        result = await self.session.execute(statement)
        return result.scalar_one_or_none()


async def get_user_db(session: AsyncSession = Depends(get_session)):
    yield SQLAlchemyUserDatabaseByUsername(session, User)


# --- Argon2 Password Helper ---
argon2_context = CryptContext(schemes=["argon2"], deprecated="auto")
password_helper = PasswordHelper(argon2_context)


async def get_user_manager(user_db=Depends(get_user_db)):
    yield UserManager(user_db, password_helper)


# --- FastAPI Users Instance ---
fastapi_users = FastAPIUsers[User, uuid.UUID](get_user_manager, [auth_backend_jwt])

current_active_user = fastapi_users.current_user(active=True)


# --- Role-Based Access Control ---
class RoleChecker:
    """
    Dependency class to check if the current user has one of the allowed roles.

    Usage:
        @router.get("/admin-only")
        def admin_endpoint(user: User = Depends(RoleChecker(["admin"]))):
            ...
    """

    def __init__(self, allowed_roles: list[str]):
        self.allowed_roles = allowed_roles

    def __call__(self, user: User = Depends(current_active_user)) -> User:
        if user.role not in self.allowed_roles:
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail=f"Acceso denegado. Rol requerido: {', '.join(self.allowed_roles)}. Su rol: {user.role}",
            )
        return user


require_admin = RoleChecker([UserRole.ADMIN.value])
require_staff = RoleChecker([UserRole.ADMIN.value, UserRole.STAFF.value])
require_authenticated = RoleChecker(
    [UserRole.ADMIN.value, UserRole.STAFF.value, UserRole.CLIENT.value]
)
