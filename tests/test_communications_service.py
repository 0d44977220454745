import pytest
from sqlmodel import select

from app.core.constants import UNKNOWN_CLIENT_ID, MessageStatus
from app.models.conversation import Conversation
from app.services import message_templates
from app.services.communications_service import CommunicationsService
from app.services.whatsapp_gateway import DRY_RUN_SID, GatewayNotConfiguredError, WhatsAppGateway
from conftest import FakeGateway


def test_send_template_fills_variables_from_subscription(communications, gateway, make_client, make_subscription):
    client = make_client(name="Ana", phone="+584121234567")
    make_subscription("2026-03-11", plan="Starlink 50GB", client=client)

    message = communications.send_template(str(client.id), message_templates.CUTOFF_DAY)

    assert message.status == MessageStatus.SENT.value
    assert message.external_sid == "SM0001"
    assert message.template == message_templates.CUTOFF_DAY
    assert gateway.sent == [
        {
            "to": "+584121234567",
            "content_sid": message_templates.TEMPLATES[message_templates.CUTOFF_DAY].content_sid,
            "variables": {"1": "Ana", "2": "Starlink 50GB", "3": "2026-03-11"},
        }
    ]


def test_explicit_data_overrides_inferred_but_not_the_name(communications, gateway, make_client, make_subscription):
    client = make_client(name="Ana", phone="+584121234567")
    make_subscription("2026-03-11", client=client)

    communications.send_template(
        "+584121234567", message_templates.REMINDER_3_DAYS, {"dueDate": "2026-03-20", "name": "Otro"}
    )
    assert gateway.sent[0]["variables"] == {"1": "Ana", "2": "2026-03-20"}


def test_missing_variables_are_rejected(communications, make_client):
    client = make_client()
    with pytest.raises(ValueError) as exc:
        communications.send_template(str(client.id), message_templates.SUSPENDED_NOTICE)
    assert "subscriptionLabel" in str(exc.value)


def test_unknown_template_and_client(communications, make_client):
    with pytest.raises(ValueError):
        communications.send_template(str(make_client().id), "promo_blackfriday")
    with pytest.raises(FileNotFoundError):
        communications.send_template("nobody", message_templates.REMINDER_3_DAYS)


def test_gateway_failure_is_stored_on_the_message(session, make_client):
    client = make_client(phone="+584121234567")
    service = CommunicationsService(session, FakeGateway(fail_for={"+584121234567"}))

    message = service.send_text(str(client.id), "Hola")
    assert message.status == MessageStatus.FAILED.value
    assert "rechazó" in message.error


def test_unconfigured_gateway_fails_before_writing(session, make_client):
    service = CommunicationsService(session, WhatsAppGateway("", "", "", dry_run=False))
    with pytest.raises(GatewayNotConfiguredError):
        service.send_text(str(make_client().id), "Hola")
    assert session.exec(select(Conversation)).all() == []


def test_dry_run_gateway_does_not_need_credentials(session, make_client):
    service = CommunicationsService(session, WhatsAppGateway("", "", "", dry_run=True))
    message = service.send_text(str(make_client().id), "Hola")
    assert message.external_sid == DRY_RUN_SID


def test_inbound_from_known_client(communications, make_client):
    client = make_client(name="Ana", phone="+584121234567")
    message = communications.receive(
        {"From": "whatsapp:+584121234567", "To": "whatsapp:+15550000000", "Body": "Ya pagué", "MessageSid": "SM9"}
    )
    assert message.client_id == str(client.id)
    assert message.status == MessageStatus.RECEIVED.value

    conversation = communications.session.get(Conversation, "+584121234567")
    assert conversation.client_id == str(client.id)
    assert conversation.unread_count == 1
    assert conversation.prospect is False


def test_inbound_from_unknown_sender_is_a_prospect(communications):
    payload = {"From": "whatsapp:+584129999999", "Body": "", "ProfileName": "Pedro"}
    communications.receive(payload)
    message = communications.receive(payload)

    assert message.client_id == UNKNOWN_CLIENT_ID
    conversation = communications.session.get(Conversation, "+584129999999")
    assert conversation.prospect is True
    assert conversation.name == "Pedro"
    assert conversation.unread_count == 2
    assert conversation.last_message_body == "(Media/No text)"


def test_inbound_without_sender_is_rejected(communications):
    with pytest.raises(ValueError):
        communications.receive({"Body": "hola"})


def test_mark_as_read(communications, make_client):
    communications.receive({"From": "whatsapp:+584129999999", "Body": "hola"})
    assert communications.mark_as_read("+584129999999").unread_count == 0
    with pytest.raises(FileNotFoundError):
        communications.mark_as_read(str(make_client().id))


def test_message_history_pagination(communications, make_client):
    client = make_client()
    sent = [communications.send_text(str(client.id), f"mensaje {i}") for i in range(3)]

    page = communications.get_messages_by_client(str(client.id), limit=2)
    assert [m.id for m in page] == [sent[2].id, sent[1].id]
    rest = communications.get_messages_by_client(str(client.id), start_after=page[-1].id)
    assert [m.id for m in rest] == [sent[0].id]
    with pytest.raises(ValueError):
        communications.get_messages_by_client(str(client.id), start_after=9999)


def test_conversations_are_sorted_by_last_message(communications, make_client):
    first = make_client(phone="+584120000101")
    second = make_client(phone="+584120000102")
    communications.send_text(str(first.id), "uno")
    communications.send_text(str(second.id), "dos")

    phones = [c.phone for c in communications.get_conversations()]
    assert phones == ["+584120000102", "+584120000101"]
