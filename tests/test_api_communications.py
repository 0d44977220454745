import pytest

from app.api.communications.main import get_gateway
from app.main import app
from app.services import message_templates
from app.services.whatsapp_gateway import WhatsAppGateway
from conftest import FakeGateway


@pytest.fixture
def fake_gateway():
    gateway = FakeGateway()
    app.dependency_overrides[get_gateway] = lambda: gateway
    return gateway


def test_webhook_always_answers_twiml(api_client, fake_gateway):
    ok = api_client.post("/api/communications/webhook", data={"From": "whatsapp:+584121234567", "Body": "hola"})
    broken = api_client.post("/api/communications/webhook", data={"Body": "sin remitente"})

    for response in (ok, broken):
        assert response.status_code == 200
        assert response.headers["content-type"].startswith("application/xml")
        assert "<Response" in response.text

    conversations = api_client.get("/api/communications/conversations").json()
    assert [c["phone"] for c in conversations] == ["+584121234567"]


def test_send_template(api_client, fake_gateway, make_client, make_subscription):
    client = make_client(name="Ana")
    make_subscription("2026-03-11", client=client)
    response = api_client.post(
        "/api/communications/send-template",
        json={"client_id": str(client.id), "template": message_templates.REMINDER_3_DAYS},
    )
    assert response.status_code == 200
    assert response.json()["status"] == "sent"
    assert fake_gateway.sent[0]["variables"] == {"1": "Ana", "2": "2026-03-11"}


def test_send_errors(api_client, fake_gateway, make_client):
    client = make_client()
    unknown_template = api_client.post(
        "/api/communications/send-template", json={"client_id": str(client.id), "template": "promo"}
    )
    assert unknown_template.status_code == 400
    missing_client = api_client.post("/api/communications/send", json={"client_id": "nobody", "body": "hola"})
    assert missing_client.status_code == 404


def test_unconfigured_gateway_is_unavailable(api_client, make_client):
    app.dependency_overrides[get_gateway] = lambda: WhatsAppGateway("", "", "", dry_run=False)
    response = api_client.post(
        "/api/communications/send", json={"client_id": str(make_client().id), "body": "hola"}
    )
    assert response.status_code == 503


def test_message_history_and_read(api_client, fake_gateway, make_client):
    client = make_client(phone="+584121234567")
    api_client.post("/api/communications/webhook", data={"From": "whatsapp:+584121234567", "Body": "hola"})
    api_client.post("/api/communications/send", json={"client_id": str(client.id), "body": "buenas"})

    history = api_client.get(f"/api/communications/messages/{client.id}").json()
    assert [m["direction"] for m in history] == ["outbound", "inbound"]

    read = api_client.post(f"/api/communications/conversations/{client.id}/read")
    assert read.json()["unread_count"] == 0


def test_templates_listing(api_client):
    assert api_client.get("/api/communications/templates").json() == [
        message_templates.REMINDER_3_DAYS,
        message_templates.SUSPENDED_NOTICE,
        message_templates.CUTOFF_DAY,
    ]
