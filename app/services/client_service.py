# app/services/client_service.py
"""
Client service layer using SQLModel ORM.
"""
import logging
from datetime import datetime
from typing import Any, Callable, Dict, List, Optional, Tuple

from sqlalchemy import and_, or_
from sqlmodel import Session, select

from ..core.constants import SubscriptionStatus
from ..models.client import Client
from ..models.conversation import Conversation
from ..models.subscription import Subscription
from .identifier_resolver import IdentifierResolver, normalize_phone
from .user_service import UserService

logger = logging.getLogger(__name__)

_EDITABLE_FIELDS = ("name", "phone", "address", "uid")


def _clean_phone(phone: Optional[str]) -> Optional[str]:
    if not phone:
        return None
    normalized = normalize_phone(phone)
    if not normalized:
        raise ValueError("Teléfono con formato inválido (use formato E.164)")
    return normalized


class ClientService:
    """
    Service layer for Client operations using SQLModel ORM.
    """

    def __init__(self, session: Session):
        """
        Initialize with a SQLModel session.

        Args:
            session: SQLModel Session instance
        """
        self.session = session
        self.resolver = IdentifierResolver(session)

    def get_client(self, identifier: str) -> Client:
        """Busca por id, uid o teléfono."""
        return self.resolver.resolve_client(identifier)

    def list_clients(self, limit: Optional[int] = None, start_after: Optional[str] = None) -> List[Client]:
        statement = select(Client)
        if start_after:
            try:
                cursor = self.resolver.resolve_client(start_after)
            except FileNotFoundError:
                raise ValueError("Cursor inválido")
            statement = statement.where(
                or_(
                    Client.created_at < cursor.created_at,
                    and_(Client.created_at == cursor.created_at, Client.id < cursor.id),
                )
            )
        statement = statement.order_by(Client.created_at.desc(), Client.id.desc())
        if limit and limit > 0:
            statement = statement.limit(limit)
        return list(self.session.exec(statement).all())

    def create_client(self, client_data: Dict[str, Any]) -> Client:
        """
        Create a client. If a client with the same phone already exists it is
        updated in place (a prospect is promoted) instead of duplicated.
        """
        name = (client_data.get("name") or "").strip()
        if not name:
            raise ValueError("El nombre es requerido")
        phone = _clean_phone(client_data.get("phone"))

        existing = self.resolver.find_by_phone(phone) if phone else None
        if existing:
            if existing.is_prospect:
                logger.info(f"Promoviendo prospecto {existing.id} ({phone}) a cliente.")
                existing.name = name
                existing.address = client_data.get("address") or existing.address
                existing.is_prospect = False
            else:
                logger.warning(
                    f"Ya existe el cliente {existing.id} con teléfono {phone}. Se actualiza el uid."
                )
            existing.uid = client_data.get("uid") or existing.uid
            existing.updated_at = datetime.utcnow()
            self.session.add(existing)
            self._link_conversation(phone, existing)
            self.session.commit()
            self.session.refresh(existing)
            return existing

        new_client = Client(
            uid=client_data.get("uid"),
            name=name,
            phone=phone,
            address=client_data.get("address"),
            is_prospect=bool(client_data.get("is_prospect", False)),
        )
        self.session.add(new_client)
        if phone:
            self._link_conversation(phone, new_client)
        self.session.commit()
        self.session.refresh(new_client)
        return new_client

    def _link_conversation(self, phone: str, client: Client) -> None:
        conversation = self.session.get(Conversation, phone)
        if conversation:
            conversation.client_id = str(client.id)
            conversation.name = client.name
            conversation.prospect = client.is_prospect
            self.session.add(conversation)

    def update_client(self, identifier: str, client_update: Dict[str, Any]) -> Client:
        if not client_update:
            raise ValueError("No se enviaron campos para actualizar.")

        client = self.get_client(identifier)
        for key, value in client_update.items():
            if key not in _EDITABLE_FIELDS:
                continue
            if key == "phone":
                value = _clean_phone(value)
            if key == "name" and not (value or "").strip():
                raise ValueError("El nombre no puede estar vacío")
            setattr(client, key, value)

        client.updated_at = datetime.utcnow()
        self.session.add(client)
        self.session.commit()
        self.session.refresh(client)
        return client

    # --- Borrado ---

    def delete_client(self, identifier: str) -> Dict[str, Any]:
        client = self.get_client(identifier)
        if client.uid:
            return self.delete_by_uid(client.uid)
        return self._delete_clients([client], uid=None)

    def delete_by_uid(self, uid: str) -> Dict[str, Any]:
        """
        Borra todos los clientes vinculados al uid en una sola transacción y
        luego ejecuta la limpieza dependiente (mejor esfuerzo).
        """
        clients = list(self.session.exec(select(Client).where(Client.uid == uid)).all())
        if not clients:
            raise FileNotFoundError(f"No hay clientes para el uid {uid}.")
        return self._delete_clients(clients, uid=uid)

    def _delete_clients(self, clients: List[Client], uid: Optional[str]) -> Dict[str, Any]:
        client_ids = [str(c.id) for c in clients]
        phones = [c.phone for c in clients if c.phone]

        for client in clients:
            self.session.delete(client)
        self.session.commit()
        logger.info(f"🗑️ Clientes eliminados: {', '.join(client_ids)}")

        compensations: List[Tuple[str, Callable[[], Any]]] = [
            ("unlink_conversations", lambda: self._unlink_conversations(client_ids, phones)),
            ("cancel_subscriptions", lambda: self._cancel_subscriptions(client_ids)),
        ]
        if uid:
            compensations.append(("delete_identity_user", lambda: UserService(self.session).delete_by_uid(uid)))

        cleanup_errors = []
        for name, action in compensations:
            try:
                action()
            except Exception as e:
                self.session.rollback()
                logger.error(f"Limpieza '{name}' falló tras borrar {client_ids}: {e}")
                cleanup_errors.append({"action": name, "error": str(e)})

        return {"deleted": client_ids, "cleanup_errors": cleanup_errors}

    def _unlink_conversations(self, client_ids: List[str], phones: List[str]) -> int:
        conditions = [Conversation.client_id.in_(client_ids)]
        if phones:
            conditions.append(Conversation.phone.in_(phones))
        conversations = self.session.exec(select(Conversation).where(or_(*conditions))).all()
        for conversation in conversations:
            conversation.client_id = None
            conversation.prospect = True
            self.session.add(conversation)
        self.session.commit()
        return len(conversations)

    def _cancel_subscriptions(self, client_ids: List[str]) -> int:
        subscriptions = self.session.exec(
            select(Subscription).where(
                Subscription.client_id.in_(client_ids),
                Subscription.status != SubscriptionStatus.CANCELLED.value,
            )
        ).all()
        for subscription in subscriptions:
            subscription.status = SubscriptionStatus.CANCELLED.value
            subscription.updated_at = datetime.utcnow()
            self.session.add(subscription)
        self.session.commit()
        return len(subscriptions)
