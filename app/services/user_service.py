# app/services/user_service.py
import logging
import uuid
from typing import List, Optional

from sqlmodel import Session, select

from ..core.constants import UserRole
from ..core.users import check_password_policy, password_helper
from ..models.user import User
from ..schemas.user import UserCreate, UserUpdate

logger = logging.getLogger(__name__)


class UserService:
    def __init__(self, session: Session):
        self.session = session

    def get_all_users(self, limit: int = 100, offset: int = 0) -> List[User]:
        statement = select(User).order_by(User.username).offset(offset).limit(limit)
        return list(self.session.exec(statement).all())

    def get_user(self, user_id: str) -> User:
        try:
            key = uuid.UUID(str(user_id))
        except ValueError:
            raise FileNotFoundError("Usuario no encontrado.")
        db_user = self.session.get(User, key)
        if not db_user:
            raise FileNotFoundError("Usuario no encontrado.")
        return db_user

    def get_user_by_username(self, username: str) -> Optional[User]:
        return self.session.exec(select(User).where(User.username == username)).first()

    def create_user(self, user_create: UserCreate, role: UserRole = UserRole.CLIENT) -> User:
        # Validar si ya existe
        if self.get_user_by_username(user_create.username):
            raise ValueError("El nombre de usuario ya existe.")
        if self.session.exec(select(User).where(User.email == user_create.email)).first():
            raise ValueError("El email ya está registrado.")
        check_password_policy(user_create.password, user_create.username)

        db_user = User(
            username=user_create.username,
            email=user_create.email,
            full_name=user_create.full_name,
            hashed_password=password_helper.hash(user_create.password),
            role=UserRole(role).value,
        )
        self.session.add(db_user)
        self.session.commit()
        self.session.refresh(db_user)
        logger.info(f"Usuario {db_user.username} creado con rol {db_user.role}")
        return db_user

    def update_user(self, user_id: str, user_update: UserUpdate) -> User:
        db_user = self.get_user(user_id)

        # Aplicar cambios solo si se enviaron
        update_data = user_update.model_dump(exclude_unset=True)

        if "disabled" in update_data:
            db_user.is_active = not update_data.pop("disabled")

        if update_data.get("password"):
            check_password_policy(update_data["password"], update_data.get("username") or db_user.username)
            db_user.hashed_password = password_helper.hash(update_data.pop("password"))
        update_data.pop("password", None)

        if update_data.get("role") is not None:
            update_data["role"] = UserRole(update_data["role"]).value

        for key, value in update_data.items():
            if value is not None:
                setattr(db_user, key, value)

        self.session.add(db_user)
        self.session.commit()
        self.session.refresh(db_user)
        return db_user

    def set_role(self, user_id: str, role: UserRole) -> User:
        db_user = self.get_user(user_id)
        db_user.role = UserRole(role).value
        self.session.add(db_user)
        self.session.commit()
        self.session.refresh(db_user)
        return db_user

    def delete_user(self, user_id: str) -> None:
        db_user = self.get_user(user_id)
        self.session.delete(db_user)
        self.session.commit()

    def delete_by_uid(self, uid: str) -> bool:
        """Borra la cuenta de identidad si existe. Devuelve False si no había cuenta."""
        try:
            db_user = self.get_user(uid)
        except FileNotFoundError:
            return False
        self.session.delete(db_user)
        self.session.commit()
        return True
