import pytest

from app.core.constants import UserRole
from conftest import make_user


@pytest.fixture
def subscription(make_subscription):
    return make_subscription("2026-03-11", amount="$90")


def payment_body(subscription, amount, reference="TX-001"):
    return {
        "subscription_id": str(subscription.id),
        "amount": amount,
        "method": "zinli",
        "reference": reference,
        "payer_email": "ana@example.com",
    }


def test_create_and_verify_full_cycle(api_client, subscription, session):
    first = api_client.post("/api/payments", json=payment_body(subscription, 45))
    second = api_client.post("/api/payments", json=payment_body(subscription, 45, "TX-002"))
    assert first.status_code == 201
    assert first.json()["status"] == "pending"
    assert first.json()["billing_cycle"] == "2026-03-11"

    assert api_client.patch(f"/api/payments/{first.json()['id']}/verify").status_code == 200
    response = api_client.patch(
        f"/api/payments/{second.json()['id']}/verify", json={"notes": "confirmado en Zinli"}
    )
    assert response.status_code == 200
    assert response.json()["status"] == "verified"
    assert response.json()["notes"] == "confirmado en Zinli"

    session.refresh(subscription)
    assert subscription.cut_date == "2026-04-11"


def test_cap_exceeded_is_a_bad_request(api_client, subscription):
    api_client.post("/api/payments", json=payment_body(subscription, 80))
    response = api_client.post("/api/payments", json=payment_body(subscription, 20, "TX-002"))
    assert response.status_code == 400
    assert "Restante permitido: $10" in response.json()["detail"]


def test_unknown_subscription(api_client):
    body = {
        "subscription_id": "00000000-0000-0000-0000-000000000000",
        "amount": 0,
        "method": "free",
        "free": True,
    }
    assert api_client.post("/api/payments", json=body).status_code == 404


def test_invalid_transition(api_client, subscription):
    created = api_client.post("/api/payments", json=payment_body(subscription, 45)).json()
    response = api_client.patch(f"/api/payments/{created['id']}/retry")
    assert response.status_code == 400
    assert "pending" in response.json()["detail"]


def test_reject_and_retry(api_client, subscription):
    created = api_client.post("/api/payments", json=payment_body(subscription, 45)).json()
    rejected = api_client.patch(f"/api/payments/{created['id']}/reject", json={"notes": "no aparece"})
    assert rejected.json()["status"] == "rejected"
    retried = api_client.patch(f"/api/payments/{created['id']}/retry")
    assert retried.json()["status"] == "pending"


def test_roles(api_client, auth_state, subscription):
    auth_state["user"] = make_user(UserRole.CLIENT, "cliente")
    created = api_client.post("/api/payments", json=payment_body(subscription, 45))
    assert created.status_code == 201
    assert created.json()["created_by"] == str(auth_state["user"].id)
    assert api_client.get("/api/payments").status_code == 403

    auth_state["user"] = make_user(UserRole.STAFF, "staff")
    assert api_client.get("/api/payments").status_code == 200
    assert api_client.patch(f"/api/payments/{created.json()['id']}/verify").status_code == 403


def test_list_filters_and_stats(api_client, subscription, make_subscription):
    other = make_subscription("2026-03-20", amount="$30")
    p1 = api_client.post("/api/payments", json=payment_body(subscription, 45)).json()
    api_client.post("/api/payments", json=payment_body(subscription, 10, "TX-002"))
    api_client.post("/api/payments", json=payment_body(other, 30, "TX-003"))
    api_client.patch(f"/api/payments/{p1['id']}/verify")

    listing = api_client.get("/api/payments", params={"status": "pending", "limit": 1}).json()
    assert listing["total"] == 2
    assert listing["has_more"] is True
    assert len(listing["items"]) == 1

    by_subscription = api_client.get(f"/api/payments/subscription/{other.id}").json()
    assert [p["amount"] for p in by_subscription] == [30]

    stats = api_client.get("/api/payments/stats").json()
    assert stats == {"total": 3, "pending": 2, "verified": 1, "rejected": 0, "total_amount": 45.0}


def test_get_payment(api_client, subscription):
    created = api_client.post("/api/payments", json=payment_body(subscription, 45)).json()
    assert api_client.get(f"/api/payments/{created['id']}").json()["reference"] == "TX-001"
    assert api_client.get("/api/payments/9999").status_code == 404


def test_body_validation(api_client, subscription):
    body = payment_body(subscription, 45)
    body["method"] = "paypal"
    assert api_client.post("/api/payments", json=body).status_code == 422


def test_only_admins_retry_rejected_payments(api_client, auth_state, subscription):
    created = api_client.post("/api/payments", json=payment_body(subscription, 45)).json()
    api_client.patch(f"/api/payments/{created['id']}/reject")

    for role, username in ((UserRole.CLIENT, "cliente"), (UserRole.STAFF, "staff")):
        auth_state["user"] = make_user(role, username)
        assert api_client.patch(f"/api/payments/{created['id']}/retry").status_code == 403

    auth_state["user"] = make_user()
    assert api_client.patch(f"/api/payments/{created['id']}/retry").json()["status"] == "pending"
