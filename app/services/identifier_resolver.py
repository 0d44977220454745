# app/services/identifier_resolver.py
"""
Resolución de identificadores de cliente.

Un identificador recibido por la API o por el job puede ser el id del cliente,
el uid del proveedor de identidad o un teléfono. La precedencia es fija:
id -> uid -> teléfono.
"""
import re
import uuid
from dataclasses import dataclass
from enum import Enum, unique
from typing import Optional

from sqlmodel import Session, select

from ..core.constants import PHONE_REGEX
from ..models.client import Client

_PHONE_NOISE = re.compile(r"[\s\-().]")
_PHONE_PATTERN = re.compile(PHONE_REGEX)


@unique
class IdentifierKind(str, Enum):
    DOC_ID = "doc_id"
    EXTERNAL_UID = "external_uid"
    PHONE_NUMBER = "phone_number"


@dataclass
class ResolvedIdentifier:
    kind: IdentifierKind
    canonical_id: str
    client: Optional[Client] = None


def normalize_phone(value: str) -> Optional[str]:
    """Devuelve el teléfono en E.164 (con '+') o None si no parece un teléfono."""
    if not value:
        return None
    candidate = value.strip()
    if candidate.startswith("whatsapp:"):
        candidate = candidate[len("whatsapp:"):]
    candidate = _PHONE_NOISE.sub("", candidate)
    if not _PHONE_PATTERN.match(candidate):
        return None
    return candidate if candidate.startswith("+") else f"+{candidate}"


class IdentifierResolver:
    def __init__(self, session: Session):
        self.session = session

    def _by_doc_id(self, identifier: str) -> Optional[Client]:
        try:
            client_uuid = uuid.UUID(identifier)
        except ValueError:
            return None
        return self.session.get(Client, client_uuid)

    def _by_uid(self, identifier: str) -> Optional[Client]:
        statement = select(Client).where(Client.uid == identifier).limit(1)
        return self.session.exec(statement).first()

    def find_by_phone(self, phone: str) -> Optional[Client]:
        statement = select(Client).where(Client.phone == phone).limit(1)
        return self.session.exec(statement).first()

    def resolve(self, identifier: str) -> ResolvedIdentifier:
        """
        Resuelve el identificador siguiendo la precedencia id -> uid -> teléfono.

        Un teléfono válido se resuelve aunque no exista cliente (prospecto):
        en ese caso canonical_id es el propio teléfono normalizado.

        Raises:
            FileNotFoundError: si no coincide con nada.
        """
        identifier = (identifier or "").strip()
        if not identifier:
            raise FileNotFoundError("Identificador de cliente vacío.")

        client = self._by_doc_id(identifier)
        if client:
            return ResolvedIdentifier(IdentifierKind.DOC_ID, str(client.id), client)

        client = self._by_uid(identifier)
        if client:
            return ResolvedIdentifier(IdentifierKind.EXTERNAL_UID, str(client.id), client)

        phone = normalize_phone(identifier)
        if phone:
            client = self.find_by_phone(phone)
            canonical = str(client.id) if client else phone
            return ResolvedIdentifier(IdentifierKind.PHONE_NUMBER, canonical, client)

        raise FileNotFoundError(f"Cliente {identifier} no encontrado.")

    def resolve_client(self, identifier: str) -> Client:
        """Como resolve(), pero exige que exista un cliente registrado."""
        resolved = self.resolve(identifier)
        if resolved.client is None:
            raise FileNotFoundError(f"Cliente {identifier} no encontrado.")
        return resolved.client
