# app/api/communications/main.py
import asyncio
import logging
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Request, Response
from sqlmodel import Session
from twilio.twiml.messaging_response import MessagingResponse

from ...core.users import require_staff
from ...db.engine_sync import get_sync_session
from ...models.user import User
from ...services import message_templates
from ...services.communications_service import CommunicationsService
from ...services.whatsapp_gateway import GatewayNotConfiguredError, WhatsAppGateway
from .models import Conversation, Message, SendTemplateRequest, SendTextRequest

logger = logging.getLogger(__name__)

router = APIRouter()


def get_gateway() -> WhatsAppGateway:
    return WhatsAppGateway()


def get_communications_service(
    session: Session = Depends(get_sync_session),
    gateway: WhatsAppGateway = Depends(get_gateway),
) -> CommunicationsService:
    return CommunicationsService(session, gateway)


@router.post("/communications/webhook", include_in_schema=False)
async def api_inbound_webhook(
    request: Request,
    service: CommunicationsService = Depends(get_communications_service),
):
    """Webhook de Twilio. Siempre responde TwiML vacío para que Twilio no reintente."""
    try:
        form = await request.form()
        await asyncio.to_thread(service.receive, dict(form))
    except Exception as e:
        logger.error(f"Error procesando webhook entrante: {e}")
    return Response(content=str(MessagingResponse()), media_type="application/xml")


@router.get("/communications/templates", response_model=List[str])
def api_get_templates(current_user: User = Depends(require_staff)):
    """Plantillas aprobadas que acepta send-template."""
    return message_templates.allowed_templates()


@router.post("/communications/send-template", response_model=Message)
def api_send_template(
    payload: SendTemplateRequest,
    service: CommunicationsService = Depends(get_communications_service),
    current_user: User = Depends(require_staff),
):
    try:
        return service.send_template(payload.client_id, payload.template, payload.template_data)
    except FileNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except GatewayNotConfiguredError as e:
        raise HTTPException(status_code=503, detail=str(e))


@router.post("/communications/send", response_model=Message)
def api_send_text(
    payload: SendTextRequest,
    service: CommunicationsService = Depends(get_communications_service),
    current_user: User = Depends(require_staff),
):
    try:
        return service.send_text(payload.client_id, payload.body)
    except FileNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except GatewayNotConfiguredError as e:
        raise HTTPException(status_code=503, detail=str(e))


@router.get("/communications/messages/{client_id}", response_model=List[Message])
def api_get_messages(
    client_id: str,
    limit: Optional[int] = Query(None, ge=1, le=200),
    start_after: Optional[int] = Query(None, alias="startAfter"),
    service: CommunicationsService = Depends(get_communications_service),
    current_user: User = Depends(require_staff),
):
    try:
        return service.get_messages_by_client(client_id, limit, start_after)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))


@router.get("/communications/conversations", response_model=List[Conversation])
def api_get_conversations(
    limit: int = Query(20, ge=1, le=100),
    start_after: Optional[str] = Query(None, alias="startAfter"),
    service: CommunicationsService = Depends(get_communications_service),
    current_user: User = Depends(require_staff),
):
    return service.get_conversations(limit, start_after)


@router.post("/communications/conversations/{identifier}/read", response_model=Conversation)
def api_mark_as_read(
    identifier: str,
    service: CommunicationsService = Depends(get_communications_service),
    current_user: User = Depends(require_staff),
):
    try:
        return service.mark_as_read(identifier)
    except FileNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
