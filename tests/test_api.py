from conftest import join, token_from_qr_url


def _order_payload(token, items, total=None, table_number=None):
    payload = {
        "token": token,
        "customerName": "Budi",
        "paymentMethod": "cash",
        "items": items,
    }
    if total is not None:
        payload["totalAmount"] = total
    if table_number is not None:
        payload["tableNumber"] = table_number
    return payload


def _scan(client, table_number=3):
    response = client.get(f"/api/table/{table_number}")
    assert response.status_code == 200
    return token_from_qr_url(response.json()["qrUrl"])


def _place_order(client, menu, quantity=1):
    token = _scan(client)
    response = client.post(
        "/api/orders",
        json=_order_payload(token, [{"menuItemId": menu["cendol"], "quantity": quantity}]),
    )
    assert response.status_code == 200
    return response.json()["orderId"]


# =============================================================================
# ROOT & HEALTH
# =============================================================================

def test_root(client):
    response = client.get("/")
    assert response.status_code == 200
    assert response.json()["realtime"] == "/ws"


def test_health(client):
    response = client.get("/health")
    assert response.status_code == 200
    data = response.json()
    assert data["status"] == "operational"
    assert data["database"] == "healthy"
    assert data["realtime_connections"] == 0


def test_menu_lists_available_items_only(client, menu):
    response = client.get("/api/menu")
    assert response.status_code == 200
    names = {item["name"] for item in response.json()}
    assert names == {"Es Cendol", "Es Teh Manis"}


# =============================================================================
# TABLE QR
# =============================================================================

def test_first_qr_request_issues_version_one(client, menu):
    first = client.get("/api/table/3").json()
    assert first["tableNumber"] == 3
    assert first["qrVersion"] == 1
    assert first["hasExistingQR"] is False
    assert first["qrUrl"].startswith("http://localhost:3000/order?token=")
    assert first["qrCode"].startswith("data:image/png;base64,")

    again = client.get("/api/table/3").json()
    assert again["hasExistingQR"] is True
    assert again["qrUrl"] == first["qrUrl"]


def test_unknown_table_is_404(client, menu):
    response = client.get("/api/table/99")
    assert response.status_code == 404
    assert response.json()["success"] is False


def test_decode_resolves_table(client, menu):
    token = _scan(client, 4)
    response = client.get(f"/api/table/decode/{token}")
    assert response.status_code == 200
    assert response.json() == {"table_number": 4, "capacity": 2, "location": "Terrace"}


def test_decode_rejects_garbage(client, menu):
    response = client.get("/api/table/decode/not-a-token")
    assert response.status_code == 400
    assert "scan the new QR code" in response.json()["error"]


def test_regenerate_bumps_version_and_revokes_old_token(client, menu):
    old_token = _scan(client)

    response = client.post("/api/table/3/regenerate")
    assert response.status_code == 200
    regenerated = response.json()
    assert regenerated["qrVersion"] == 2
    new_token = token_from_qr_url(regenerated["qrUrl"])
    assert new_token != old_token

    assert client.get(f"/api/table/decode/{old_token}").status_code == 400
    assert client.get(f"/api/table/decode/{new_token}").status_code == 200

    assert client.post("/api/table/3/regenerate").json()["qrVersion"] == 3


def test_regenerate_unknown_table_is_404(client, menu):
    assert client.post("/api/table/99/regenerate").status_code == 404


# =============================================================================
# ORDERS
# =============================================================================

def test_stale_token_is_rejected_and_new_order_reaches_staff(client, menu):
    old_token = _scan(client)
    client.post("/api/table/3/regenerate")

    with client.websocket_connect("/ws") as cashier, client.websocket_connect("/ws") as kitchen:
        join(cashier, "join-cashier")
        join(kitchen, "join-kitchen")

        stale = client.post(
            "/api/orders",
            json=_order_payload(old_token, [{"menuItemId": menu["cendol"], "quantity": 1}]),
        )
        assert stale.status_code == 400
        assert stale.json()["success"] is False
        assert "scan the new QR code" in stale.json()["error"]

        rescan = client.get("/api/table/3").json()
        assert rescan["qrVersion"] == 2
        assert rescan["hasExistingQR"] is True

        response = client.post(
            "/api/orders",
            json=_order_payload(
                token_from_qr_url(rescan["qrUrl"]),
                [{"menuItemId": menu["cendol"], "quantity": 2, "price": 15000}],
                total=30000,
            ),
        )
        assert response.status_code == 200
        body = response.json()
        assert body["success"] is True
        order_id = body["orderId"]

        # The rejected order was never broadcast, so this is the first event
        for ws in (cashier, kitchen):
            message = ws.receive_json()
            assert message["event"] == "new-order"
            order = message["data"]
            assert order["id"] == order_id
            assert order["table_number"] == 3
            assert order["total_amount"] == 30000
            assert order["order_status"] == "pending"
            assert order["items"][0]["name"] == "Es Cendol"
            assert order["items"][0]["quantity"] == 2
            assert order["items"][0]["price"] == 15000

    listed = client.get("/api/orders").json()
    assert [o["id"] for o in listed] == [order_id]


def test_token_for_another_table_is_rejected(client, menu):
    token = _scan(client, 3)
    response = client.post(
        "/api/orders",
        json=_order_payload(token, [{"menuItemId": menu["cendol"], "quantity": 1}], table_number=4),
    )
    assert response.status_code == 400
    assert client.get("/api/orders").json() == []


def test_unavailable_item_is_rejected(client, menu):
    token = _scan(client)
    response = client.post(
        "/api/orders",
        json=_order_payload(token, [{"menuItemId": menu["rendang"], "quantity": 1}]),
    )
    assert response.status_code == 400
    assert "not available" in response.json()["error"]


def test_total_mismatch_is_rejected(client, menu):
    token = _scan(client)
    response = client.post(
        "/api/orders",
        json=_order_payload(token, [{"menuItemId": menu["teh"], "quantity": 3}], total=1000),
    )
    assert response.status_code == 400
    assert "does not match" in response.json()["error"]
    assert client.get("/api/orders").json() == []


def test_price_snapshot_uses_menu_price(client, menu):
    token = _scan(client)
    response = client.post(
        "/api/orders",
        json=_order_payload(token, [
            {"menuItemId": menu["teh"], "quantity": 3, "notes": "less sugar"},
            {"menuItemId": menu["cendol"], "quantity": 1},
        ]),
    )
    order = client.get(f"/api/orders/{response.json()['orderId']}").json()

    assert order["total_amount"] == 39000
    assert [(i["name"], i["price"], i["notes"]) for i in order["items"]] == [
        ("Es Teh Manis", 8000, "less sugar"),
        ("Es Cendol", 15000, ""),
    ]


def test_empty_order_is_a_validation_error(client, menu):
    token = _scan(client)
    response = client.post("/api/orders", json=_order_payload(token, []))
    assert response.status_code == 422


def test_zero_quantity_is_a_validation_error(client, menu):
    token = _scan(client)
    response = client.post(
        "/api/orders",
        json=_order_payload(token, [{"menuItemId": menu["cendol"], "quantity": 0}]),
    )
    assert response.status_code == 422


def test_get_unknown_order_is_404(client, menu):
    assert client.get("/api/orders/12345").status_code == 404


def test_list_orders_filters_by_status(client, menu):
    first = _place_order(client, menu)
    second = _place_order(client, menu)
    client.put(f"/api/orders/{first}/status", json={"status": "preparing"})

    assert [o["id"] for o in client.get("/api/orders").json()] == [second, first]
    assert [o["id"] for o in client.get("/api/orders?status=preparing").json()] == [first]

    bad = client.get("/api/orders?status=cancelled")
    assert bad.status_code == 400


# =============================================================================
# STATUS UPDATES
# =============================================================================

def test_skipping_a_stage_is_rejected_and_next_step_is_broadcast(client, menu):
    order_id = _place_order(client, menu)

    with client.websocket_connect("/ws") as cashier, client.websocket_connect("/ws") as kitchen:
        join(cashier, "join-cashier")
        join(kitchen, "join-kitchen")

        skipped = client.put(f"/api/orders/{order_id}/status", json={"status": "ready"})
        assert skipped.status_code == 400
        assert "pending" in skipped.json()["error"]
        assert client.get(f"/api/orders/{order_id}").json()["order_status"] == "pending"

        response = client.put(f"/api/orders/{order_id}/status", json={"status": "preparing"})
        assert response.status_code == 200
        body = response.json()
        assert body["success"] is True
        assert body["order"]["order_status"] == "preparing"

        for ws in (cashier, kitchen):
            message = ws.receive_json()
            assert message["event"] == "order-updated"
            assert message["data"]["id"] == order_id
            assert message["data"]["order_status"] == "preparing"
            assert message["data"]["items"][0]["name"] == "Es Cendol"


def test_full_lifecycle(client, menu):
    order_id = _place_order(client, menu)
    for status in ("preparing", "ready", "completed"):
        response = client.put(f"/api/orders/{order_id}/status", json={"status": status})
        assert response.status_code == 200

    # completed is final
    again = client.put(f"/api/orders/{order_id}/status", json={"status": "completed"})
    assert again.status_code == 400
    backwards = client.put(f"/api/orders/{order_id}/status", json={"status": "pending"})
    assert backwards.status_code == 400


def test_unknown_status_is_rejected(client, menu):
    order_id = _place_order(client, menu)
    response = client.put(f"/api/orders/{order_id}/status", json={"status": "cancelled"})
    assert response.status_code == 400
    assert client.get(f"/api/orders/{order_id}").json()["order_status"] == "pending"


def test_status_of_unknown_order_is_404(client, menu):
    response = client.put("/api/orders/12345/status", json={"status": "preparing"})
    assert response.status_code == 404


# =============================================================================
# REALTIME PRESENCE
# =============================================================================

def test_presence_is_pushed_to_admins(client):
    with client.websocket_connect("/ws") as admin:
        join(admin, "join-admin")

        with client.websocket_connect("/ws") as staff:
            staff.send_json({"event": "user-online", "data": 7})
            assert admin.receive_json() == {"event": "users-online-update", "data": [7]}
            assert client.get("/api/admin/users/online").json() == {"users": [7]}

        assert admin.receive_json() == {"event": "users-online-update", "data": []}
        assert client.get("/api/admin/users/online").json() == {"users": []}


def test_socket_answers_ping_and_reports_bad_frames(client):
    with client.websocket_connect("/ws") as ws:
        ws.send_json({"event": "ping", "data": "hi"})
        assert ws.receive_json() == {"event": "pong", "data": "hi"}

        ws.send_text("{not json")
        assert ws.receive_json()["event"] == "error"

        ws.send_json({"event": "join-nowhere"})
        assert ws.receive_json()["event"] == "error"


def test_binary_frame_gets_error_and_socket_stays_open(client):
    with client.websocket_connect("/ws") as ws:
        ws.send_bytes(b"\x00\x01")
        reply = ws.receive_json()
        assert reply["event"] == "error"
        assert "text" in reply["data"]["message"]

        ws.send_json({"event": "ping", "data": 1})
        assert ws.receive_json() == {"event": "pong", "data": 1}
