from tesipedia.services.notification_service import create_notification


def seed(user, count=3, **kwargs):
    return [create_notification(user.id, "info", f"aviso {i}", **kwargs) for i in range(count)]


def test_list_own_notifications(client, users, auth_headers):
    seed(users["client"], 3)
    seed(users["writer"], 1)

    res = client.get("/api/v1/notifications?limit=2", headers=auth_headers(users["client"]))
    body = res.get_json()
    assert res.status_code == 200
    assert body["pagination"]["total"] == 3
    assert len(body["notifications"]) == 2
    assert all(n["user"] == users["client"].id for n in body["notifications"])


def test_is_read_filter_and_stats(client, users, auth_headers):
    seed(users["client"], 2)
    seed(users["client"], 1, is_read=True)
    headers = auth_headers(users["client"])

    res = client.get("/api/v1/notifications?isRead=false", headers=headers)
    assert res.get_json()["pagination"]["total"] == 2

    res = client.get("/api/v1/notifications/stats", headers=headers)
    assert res.get_json()["stats"] == {"total": 3, "unread": 2, "read": 1}


def test_mark_one_and_all_read(client, users, auth_headers):
    first, _second = seed(users["client"], 2)
    headers = auth_headers(users["client"])

    res = client.patch(f"/api/v1/notifications/{first.id}/read", headers=headers)
    assert res.get_json()["notification"]["isRead"] is True

    res = client.post("/api/v1/notifications/mark-all-read", headers=headers)
    assert res.get_json()["updated"] == 1


def test_only_owner_or_admin_may_touch(client, users, auth_headers):
    (notif,) = seed(users["client"], 1)

    res = client.patch(f"/api/v1/notifications/{notif.id}/read", headers=auth_headers(users["writer"]))
    assert res.status_code == 403

    res = client.delete(f"/api/v1/notifications/{notif.id}", headers=auth_headers(users["admin"]))
    assert res.status_code == 200

    res = client.delete(f"/api/v1/notifications/{notif.id}", headers=auth_headers(users["admin"]))
    assert res.status_code == 404


def test_admin_creates_notification(client, users, auth_headers):
    payload = {
        "user": users["writer"].id,
        "type": "pedido",
        "message": "Nuevo pedido disponible",
        "link": "/orders/ORD-1a2b3c4d",
        "priority": "high",
    }
    res = client.post("/api/v1/notifications", json=payload, headers=auth_headers(users["admin"]))
    assert res.status_code == 201
    notif = res.get_json()["notification"]
    assert notif["type"] == "pedido"
    assert notif["priority"] == "high"
    assert notif["isRead"] is False


def test_create_notification_validation(client, users, auth_headers):
    headers = auth_headers(users["admin"])

    res = client.post(
        "/api/v1/notifications",
        json={"user": users["writer"].id, "type": "spam", "message": "x"},
        headers=headers,
    )
    assert res.status_code == 400
    assert "type" in res.get_json()["error"]["details"]

    res = client.post(
        "/api/v1/notifications",
        json={"user": "usr-missing", "type": "info", "message": "x"},
        headers=headers,
    )
    assert res.status_code == 404


def test_non_admin_cannot_create_or_list_all(client, users, auth_headers):
    headers = auth_headers(users["client"])
    res = client.post(
        "/api/v1/notifications",
        json={"user": users["client"].id, "type": "info", "message": "x"},
        headers=headers,
    )
    assert res.status_code == 403
    assert client.get("/api/v1/notifications/admin", headers=headers).status_code == 403


def test_admin_lists_everything(client, users, auth_headers):
    seed(users["client"], 1)
    seed(users["writer"], 2)

    res = client.get("/api/v1/notifications/admin", headers=auth_headers(users["admin"]))
    assert res.get_json()["pagination"]["total"] == 3
