# app/services/whatsapp_gateway.py
"""
Cliente del gateway de mensajería (Twilio, canal WhatsApp).
"""
import json
import logging
from dataclasses import dataclass
from typing import Any, Dict, Mapping, Optional

from twilio.rest import Client as TwilioClient

from ..core import config

logger = logging.getLogger(__name__)

DRY_RUN_SID = "dry-run-sid"
_PREFIX = "whatsapp:"


class GatewayNotConfiguredError(RuntimeError):
    """Faltan credenciales de Twilio."""


@dataclass
class InboundMessage:
    from_phone: str
    to_phone: str
    body: str
    external_sid: Optional[str]
    profile_name: Optional[str]


def _strip_prefix(address: Optional[str]) -> str:
    address = (address or "").strip()
    return address[len(_PREFIX):] if address.startswith(_PREFIX) else address


def _with_prefix(phone: str) -> str:
    return phone if phone.startswith(_PREFIX) else f"{_PREFIX}{phone}"


class WhatsAppGateway:
    """
    Envío de plantillas y texto libre por WhatsApp.

    With dry_run enabled no request is made and every send returns
    DRY_RUN_SID.
    """

    def __init__(
        self,
        account_sid: Optional[str] = None,
        auth_token: Optional[str] = None,
        from_number: Optional[str] = None,
        dry_run: Optional[bool] = None,
    ):
        self.account_sid = account_sid if account_sid is not None else config.TWILIO_ACCOUNT_SID
        self.auth_token = auth_token if auth_token is not None else config.TWILIO_AUTH_TOKEN
        self.from_number = from_number if from_number is not None else config.TWILIO_FROM_NUMBER
        self.dry_run = config.WHATSAPP_DRY_RUN if dry_run is None else dry_run
        self._client: Optional[TwilioClient] = None

    @property
    def is_configured(self) -> bool:
        return bool(self.account_sid and self.auth_token and self.from_number)

    def ensure_ready(self) -> None:
        if not self.dry_run and not self.is_configured:
            raise GatewayNotConfiguredError("Twilio no está configurado (TWILIO_*).")

    @property
    def client(self) -> TwilioClient:
        if self._client is None:
            self.ensure_ready()
            self._client = TwilioClient(self.account_sid, self.auth_token)
        return self._client

    def send_template(self, to: str, content_sid: str, variables: Dict[str, str]) -> str:
        if self.dry_run:
            logger.info(f"[DRY-RUN] Plantilla {content_sid} a {to}: {variables}")
            return DRY_RUN_SID
        message = self.client.messages.create(
            from_=_with_prefix(self.from_number),
            to=_with_prefix(to),
            content_sid=content_sid,
            content_variables=json.dumps(variables),
        )
        return message.sid

    def send_text(self, to: str, body: str) -> str:
        if self.dry_run:
            logger.info(f"[DRY-RUN] Texto a {to}: {body[:80]}")
            return DRY_RUN_SID
        message = self.client.messages.create(
            from_=_with_prefix(self.from_number),
            to=_with_prefix(to),
            body=body,
        )
        return message.sid

    @staticmethod
    def parse_inbound(payload: Mapping[str, Any]) -> InboundMessage:
        """Campos del webhook de Twilio: From, To, Body, MessageSid, ProfileName."""
        from_phone = _strip_prefix(payload.get("From"))
        if not from_phone:
            raise ValueError("Remitente inválido")
        return InboundMessage(
            from_phone=from_phone,
            to_phone=_strip_prefix(payload.get("To")),
            body=payload.get("Body") or "",
            external_sid=payload.get("MessageSid"),
            profile_name=payload.get("ProfileName"),
        )
