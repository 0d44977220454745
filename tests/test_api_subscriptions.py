def subscription_body(client, **overrides):
    body = {
        "client_id": client.phone,
        "start_date": "2026-01-31",
        "cut_date": "2026-01-31",
        "plan": "Starlink 50GB",
        "amount": "$90",
        "status": "suspended",
    }
    body.update(overrides)
    return body


def test_create_resolves_client_and_forces_active(api_client, make_client):
    client = make_client(phone="+584121234567")
    response = api_client.post("/api/subscriptions", json=subscription_body(client))
    assert response.status_code == 201
    body = response.json()
    assert body["client_id"] == str(client.id)
    assert body["status"] == "active"


def test_create_validation(api_client, make_client):
    client = make_client()
    assert api_client.post("/api/subscriptions", json=subscription_body(client, cut_date="31/01/2026")).status_code == 400
    assert api_client.post("/api/subscriptions", json=subscription_body(client, amount="90")).status_code == 400
    assert api_client.post("/api/subscriptions", json=subscription_body(client, client_id="ghost")).status_code == 404


def test_renew_clamps_to_month_end(api_client, make_client):
    created = api_client.post("/api/subscriptions", json=subscription_body(make_client())).json()
    renewed = api_client.post(f"/api/subscriptions/{created['id']}/renew").json()
    assert renewed["cut_date"] == "2026-02-28"
    assert renewed["status"] == "active"


def test_update_status_must_be_known(api_client, make_subscription):
    subscription = make_subscription("2026-03-11")
    ok = api_client.put(f"/api/subscriptions/{subscription.id}", json={"status": "paused"})
    assert ok.json()["status"] == "paused"
    assert api_client.put(f"/api/subscriptions/{subscription.id}", json={"status": "expired"}).status_code == 422


def test_list_with_cursor(api_client, make_subscription):
    for cut in ("2026-03-01", "2026-03-02", "2026-03-03"):
        make_subscription(cut)
    first_page = api_client.get("/api/subscriptions", params={"limit": 2}).json()
    assert len(first_page) == 2
    rest = api_client.get("/api/subscriptions", params={"startAfter": first_page[-1]["id"]}).json()
    assert len(rest) == 1
    assert api_client.get("/api/subscriptions", params={"startAfter": "nope"}).status_code == 400


def test_delete(api_client, make_subscription):
    subscription_id = make_subscription("2026-03-11").id
    url = f"/api/subscriptions/{subscription_id}"
    assert api_client.delete(url).status_code == 204
    assert api_client.get(url).status_code == 404
