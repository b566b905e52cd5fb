def test_requests_without_token_are_unauthorized(client):
    response = client.get("/api/v1/orders")

    assert response.status_code == 401
    assert response.json()["detail"] == "Missing bearer token"


def test_tampered_token_is_unauthorized(client, auth_headers):
    token = auth_headers["customer"]["Authorization"]
    response = client.get("/api/v1/orders", headers={"Authorization": token[:-2] + "xx"})

    assert response.status_code == 401


def test_technician_cannot_submit(client, auth_headers):
    response = client.post(
        "/api/v1/orders",
        json={"location": "Room 1", "description": "Broken light"},
        headers=auth_headers["technician"],
    )

    assert response.status_code == 403
    assert response.json()["code"] == "FORBIDDEN"


def test_customer_cannot_take_or_read_logs(client, auth_headers, submitted_order):
    order_id = submitted_order["id"]

    take = client.post(f"/api/v1/orders/{order_id}/take", headers=auth_headers["customer"])
    logs = client.get(f"/api/v1/orders/{order_id}/logs", headers=auth_headers["customer"])

    assert take.status_code == 403
    assert logs.status_code == 403


def test_other_customer_cannot_see_or_change_order(client, auth_headers, submitted_order):
    order_id = submitted_order["id"]
    headers = auth_headers["other_customer"]

    assert client.get(f"/api/v1/orders/{order_id}", headers=headers).status_code == 403
    assert client.post(f"/api/v1/orders/{order_id}/cancel", headers=headers).status_code == 403
    patch = client.patch(
        f"/api/v1/orders/{order_id}", json={"location": "Elsewhere"}, headers=headers
    )
    assert patch.status_code == 403

    own = client.get(f"/api/v1/orders/{order_id}", headers=auth_headers["customer"])
    assert own.json()["status"] == "pending"
    assert own.json()["location"] == "Dorm 3, Room 214"


def test_customer_list_is_scoped_to_own_orders(client, auth_headers, submitted_order):
    client.post(
        "/api/v1/orders",
        json={"location": "Room 2", "description": "Door lock stuck"},
        headers=auth_headers["other_customer"],
    )

    mine = client.get("/api/v1/orders", headers=auth_headers["customer"]).json()
    everything = client.get("/api/v1/orders", headers=auth_headers["technician"]).json()

    assert [item["id"] for item in mine["items"]] == [submitted_order["id"]]
    assert everything["total"] == 2


def test_only_assigned_technician_can_finish(client, auth_headers, submitted_order):
    order_id = submitted_order["id"]
    client.post(f"/api/v1/orders/{order_id}/take", headers=auth_headers["technician"])

    response = client.post(
        f"/api/v1/orders/{order_id}/finish", headers=auth_headers["other_technician"]
    )

    assert response.status_code == 403
    assert response.json()["reason"] == "not_assigned_technician"
