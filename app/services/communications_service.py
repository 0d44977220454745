# app/services/communications_service.py
"""
Mensajería con clientes por WhatsApp: envíos salientes (plantilla o texto),
webhook entrante y bandeja de conversaciones.
"""
import logging
from datetime import datetime
from typing import Any, Dict, List, Mapping, Optional

from sqlalchemy import and_, or_
from sqlmodel import Session, select

from ..core.constants import UNKNOWN_CLIENT_ID, MessageDirection, MessageStatus
from ..models.client import Client
from ..models.conversation import Conversation
from ..models.message import Message
from . import message_templates
from .identifier_resolver import IdentifierResolver, normalize_phone
from .subscription_service import SubscriptionService
from .whatsapp_gateway import WhatsAppGateway

logger = logging.getLogger(__name__)


class CommunicationsService:
    def __init__(self, session: Session, gateway: Optional[WhatsAppGateway] = None):
        self.session = session
        self.gateway = gateway or WhatsAppGateway()
        self.resolver = IdentifierResolver(session)

    # --- Helpers ---

    def _client_with_phone(self, identifier: str) -> Client:
        client = self.resolver.resolve_client(identifier)
        if not client.phone:
            raise ValueError("El cliente no tiene número de teléfono")
        return client

    def _touch_conversation(
        self,
        phone: str,
        body: str,
        direction: MessageDirection,
        client: Optional[Client] = None,
        name: Optional[str] = None,
    ) -> Conversation:
        conversation = self.session.get(Conversation, phone)
        if not conversation:
            conversation = Conversation(phone=phone)
        conversation.last_message_at = datetime.utcnow()
        conversation.last_message_body = body
        conversation.last_message_dir = direction.value
        if client:
            conversation.client_id = str(client.id)
            conversation.name = client.name
            conversation.prospect = client.is_prospect
        elif name and not conversation.name:
            conversation.name = name
        if direction == MessageDirection.INBOUND:
            conversation.unread_count = (conversation.unread_count or 0) + 1
        self.session.add(conversation)
        return conversation

    def _deliver(self, message: Message, send) -> Message:
        """Ejecuta el envío y deja el mensaje en sent o failed; nunca propaga."""
        try:
            message.external_sid = send()
            message.status = MessageStatus.SENT.value
        except Exception as e:
            logger.error(f"❌ Fallo enviando mensaje {message.id} a {message.to}: {e}")
            message.status = MessageStatus.FAILED.value
            message.error = str(e)
        message.updated_at = datetime.utcnow()
        self.session.add(message)
        self.session.commit()
        self.session.refresh(message)
        return message

    # --- Salientes ---

    def build_template_data(
        self, template_name: str, client: Client, data: Optional[Dict[str, Any]] = None
    ) -> Dict[str, Any]:
        """Inferred values < explicit data < client name."""
        subscription = SubscriptionService(self.session).latest_for_client(str(client.id))
        inferred = {}
        if subscription:
            inferred = message_templates.infer_template_data(
                template_name, subscription.plan, subscription.cut_date
            )
        return {**inferred, **(data or {}), "name": client.name}

    def send_template(
        self, identifier: str, template_name: str, data: Optional[Dict[str, Any]] = None
    ) -> Message:
        """
        Envía una plantilla aprobada al cliente.

        Un fallo del gateway no se propaga: el mensaje queda con status `failed`.

        Raises:
            FileNotFoundError: el cliente no existe.
            ValueError: plantilla desconocida, variables faltantes o cliente sin teléfono.
        """
        self.gateway.ensure_ready()
        template = message_templates.get_template(template_name)
        client = self._client_with_phone(identifier)
        merged = self.build_template_data(template_name, client, data)
        missing = message_templates.get_missing_template_variables(template_name, merged)
        if missing:
            raise ValueError(f"Faltan variables de plantilla: {', '.join(missing)}")
        variables = message_templates.render_content_variables(template_name, merged)

        message = Message(
            client_id=str(client.id),
            template=template_name,
            body="",
            to=client.phone,
            direction=MessageDirection.OUTBOUND.value,
            status=MessageStatus.QUEUED.value,
        )
        self.session.add(message)
        self._touch_conversation(
            client.phone, f"Template: {template_name}", MessageDirection.OUTBOUND, client=client
        )
        self.session.commit()
        self.session.refresh(message)

        return self._deliver(
            message,
            lambda: self.gateway.send_template(client.phone, template.content_sid, variables),
        )

    def send_text(self, identifier: str, body: str) -> Message:
        if not body or not body.strip():
            raise ValueError("El mensaje no puede estar vacío")
        self.gateway.ensure_ready()
        client = self._client_with_phone(identifier)

        message = Message(
            client_id=str(client.id),
            body=body,
            to=client.phone,
            direction=MessageDirection.OUTBOUND.value,
            status=MessageStatus.QUEUED.value,
        )
        self.session.add(message)
        self._touch_conversation(client.phone, body, MessageDirection.OUTBOUND, client=client)
        self.session.commit()
        self.session.refresh(message)

        return self._deliver(message, lambda: self.gateway.send_text(client.phone, body))

    # --- Entrantes ---

    def receive(self, payload: Mapping[str, Any]) -> Message:
        """Registra un mensaje entrante del webhook. Remitentes desconocidos quedan como prospectos."""
        inbound = self.gateway.parse_inbound(payload)
        phone = normalize_phone(inbound.from_phone) or inbound.from_phone
        client = self.resolver.find_by_phone(phone)

        message = Message(
            client_id=str(client.id) if client else UNKNOWN_CLIENT_ID,
            body=inbound.body,
            to=normalize_phone(inbound.to_phone) or inbound.to_phone,
            sender=phone,
            direction=MessageDirection.INBOUND.value,
            status=MessageStatus.RECEIVED.value,
            external_sid=inbound.external_sid,
        )
        self.session.add(message)
        self._touch_conversation(
            phone,
            inbound.body or "(Media/No text)",
            MessageDirection.INBOUND,
            client=client,
            name=inbound.profile_name,
        )
        self.session.commit()
        self.session.refresh(message)
        logger.info(f"📩 Mensaje entrante de {phone} (cliente: {message.client_id})")
        return message

    # --- Lectura ---

    def get_messages_by_client(
        self, client_id: str, limit: Optional[int] = None, start_after: Optional[int] = None
    ) -> List[Message]:
        statement = select(Message).where(Message.client_id == client_id)
        if start_after is not None:
            cursor = self.session.get(Message, start_after)
            if not cursor:
                raise ValueError("Cursor inválido")
            statement = statement.where(
                or_(
                    Message.created_at < cursor.created_at,
                    and_(Message.created_at == cursor.created_at, Message.id < cursor.id),
                )
            )
        statement = statement.order_by(Message.created_at.desc(), Message.id.desc())
        if limit and limit > 0:
            statement = statement.limit(limit)
        return list(self.session.exec(statement).all())

    def get_conversations(self, limit: int = 20, start_after: Optional[str] = None) -> List[Conversation]:
        statement = select(Conversation).where(Conversation.last_message_at.is_not(None))
        if start_after:
            cursor = self.session.get(Conversation, start_after)
            if cursor and cursor.last_message_at:
                statement = statement.where(
                    or_(
                        Conversation.last_message_at < cursor.last_message_at,
                        and_(
                            Conversation.last_message_at == cursor.last_message_at,
                            Conversation.phone < cursor.phone,
                        ),
                    )
                )
        statement = statement.order_by(
            Conversation.last_message_at.desc(), Conversation.phone.desc()
        ).limit(limit)
        return list(self.session.exec(statement).all())

    def mark_as_read(self, identifier: str) -> Conversation:
        resolved = self.resolver.resolve(identifier)
        phone = resolved.client.phone if resolved.client else resolved.canonical_id
        conversation = self.session.get(Conversation, phone) if phone else None
        if not conversation:
            raise FileNotFoundError(f"Conversación {identifier} no encontrada.")
        conversation.unread_count = 0
        self.session.add(conversation)
        self.session.commit()
        self.session.refresh(conversation)
        return conversation
