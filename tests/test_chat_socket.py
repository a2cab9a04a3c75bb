from tesipedia.models.message import Message
from tesipedia.sockets.rooms import RoomKind, room_name

VISITOR_ID = "0123456789abcdef0123456789abcdef"


def test_room_names():
    assert room_name(RoomKind.ORDER, "ORD-1") == "order:ORD-1"
    assert room_name("notifications", "usr-1") == "notifications:usr-1"


def test_connect_requires_valid_credentials(socket_client, users):
    assert socket_client(users["client"]).is_connected()
    assert socket_client(VISITOR_ID).is_connected()
    assert not socket_client("not-a-public-id").is_connected()


def test_connect_rejects_bad_token(app, users):
    from tesipedia.extensions import socketio

    bad = socketio.test_client(app, auth={"token": "garbage"})
    assert not bad.is_connected()

    anonymous = socketio.test_client(app)
    assert not anonymous.is_connected()


def test_visitor_message_reaches_admin_live(socket_client, users, received):
    admin = socket_client(users["admin"])
    visitor = socket_client(VISITOR_ID)

    visitor.emit("sendMessage", {"text": "hola", "name": "Ana"})

    got = received(admin, "newMessage")
    assert len(got) == 1
    assert got[0]["conversationId"] == VISITOR_ID
    assert got[0]["senderName"] == "Ana"

    echoed = received(visitor, "newMessage")
    assert [m["text"] for m in echoed] == ["hola"]


def test_visitor_cannot_spoof_public_id(socket_client, users):
    visitor = socket_client(VISITOR_ID)
    visitor.emit("sendMessage", {"text": "hola", "publicId": "fedcba9876543210fedcba9876543210"})

    assert Message.query.one().sender == VISITOR_ID


def test_direct_message_goes_to_both_personal_rooms(socket_client, users, received):
    admin = socket_client(users["admin"])
    client_user = socket_client(users["client"])
    writer = socket_client(users["writer"])

    admin.emit("sendMessage", {"receiver": users["client"].id, "text": "hola"})

    assert len(received(client_user, "newMessage")) == 1
    assert len(received(admin, "newMessage")) == 1
    assert received(writer, "newMessage") == []


def test_order_room_flow(socket_client, users, order, received):
    writer = socket_client(users["writer"])
    client_user = socket_client(users["client"])
    outsider = socket_client(users["other_admin"])

    writer.emit("joinOrderChat", order.id)
    client_user.emit("joinOrderChat", {"orderId": order.id})

    writer.emit("sendMessage", {"receiver": users["client"].id, "orderId": order.id, "text": "avance"})

    got = received(client_user, "newMessage")
    assert [m["orderId"] for m in got] == [order.id]
    assert received(outsider, "newMessage") == []


def test_join_order_chat_refusals(socket_client, users, order, received):
    visitor = socket_client(VISITOR_ID)
    visitor.emit("joinOrderChat", order.id)
    errors = received(visitor, "error")
    assert errors and errors[0]["code"] == "FORBIDDEN"

    stranger = socket_client(users["client"])
    stranger.emit("joinOrderChat", "ORD-missing")
    assert received(stranger, "error")[0]["code"] == "NOT_FOUND"


def test_errors_go_only_to_the_offending_socket(socket_client, users, received):
    admin = socket_client(users["admin"])
    client_user = socket_client(users["client"])

    client_user.emit("sendMessage", {"receiver": users["admin"].id, "text": "hola"})

    assert received(client_user, "error")[0]["code"] == "FORBIDDEN"
    assert received(admin, "error") == []


def test_invalid_payload_becomes_error_event(socket_client, users, received):
    admin = socket_client(users["admin"])
    admin.emit("sendMessage", {"text": 42})

    err = received(admin, "error")[0]
    assert err["code"] == "VALIDATION_ERROR"


def test_mark_as_read_notifies_sender_once(socket_client, users, received):
    admin = socket_client(users["admin"])
    client_user = socket_client(users["client"])

    admin.emit("sendMessage", {"receiver": users["client"].id, "text": "hola"})
    message_id = received(client_user, "newMessage")[0]["id"]
    received(admin, "newMessage")

    client_user.emit("markAsRead", message_id)
    client_user.emit("markAsRead", {"messageId": message_id})

    receipts = received(admin, "messageRead")
    assert len(receipts) == 1
    assert receipts[0]["readBy"] == users["client"].id
    assert received(client_user, "error") == []
    assert Message.query.get(message_id).is_read is True


def test_only_receiver_marks_as_read(socket_client, users, received):
    admin = socket_client(users["admin"])
    admin.emit("sendMessage", {"receiver": users["client"].id, "text": "hola"})
    message_id = received(admin, "newMessage")[0]["id"]

    admin.emit("markAsRead", message_id)
    assert received(admin, "error")[0]["code"] == "FORBIDDEN"


def test_typing_is_relayed_to_counterparts_only(socket_client, users, order, received):
    writer = socket_client(users["writer"])
    client_user = socket_client(users["client"])

    writer.emit("typing", {"receiver": users["client"].id, "isTyping": True})
    assert received(writer, "error")[0]["code"] == "FORBIDDEN"
    assert received(client_user, "userTyping") == []

    writer.emit("sendMessage", {"receiver": users["client"].id, "orderId": order.id, "text": "avance"})
    received(writer, "newMessage")

    writer.emit("typing", {"receiver": users["client"].id, "isTyping": True})
    got = received(client_user, "userTyping")
    assert got == [{"userId": users["writer"].id, "name": "Wendy Writer", "orderId": None, "isTyping": True}]
    assert received(writer, "userTyping") == []

    writer.emit("typing", {"orderId": order.id, "isTyping": True})
    assert received(writer, "error")[0]["code"] == "FORBIDDEN"

    assert Message.query.count() == 1


def test_visitor_typing_reaches_default_admin(socket_client, users, received):
    admin = socket_client(users["admin"])
    other_admin = socket_client(users["other_admin"])
    visitor = socket_client(VISITOR_ID)

    visitor.emit("typing", {"receiver": users["admin"].id, "isTyping": True})
    assert [t["userId"] for t in received(admin, "userTyping")] == [VISITOR_ID]

    visitor.emit("typing", {"receiver": users["other_admin"].id, "isTyping": True})
    assert received(visitor, "error")[0]["code"] == "FORBIDDEN"
    assert received(other_admin, "userTyping") == []

    other_admin.emit("typing", {"receiver": VISITOR_ID, "isTyping": True})
    assert received(other_admin, "error")[0]["code"] == "FORBIDDEN"

    visitor.emit("sendMessage", {"text": "hola"})
    other_admin.emit("typing", {"receiver": VISITOR_ID, "isTyping": True})
    assert [t["userId"] for t in received(visitor, "userTyping")] == [users["other_admin"].id]


def test_visitor_cannot_post_to_order_room(socket_client, users, order, received):
    client_user = socket_client(users["client"])
    client_user.emit("joinOrderChat", order.id)
    visitor = socket_client(VISITOR_ID)

    visitor.emit("sendMessage", {"text": "spam", "orderId": order.id})

    assert received(visitor, "error")[0]["code"] == "FORBIDDEN"
    assert received(client_user, "newMessage") == []
    assert Message.query.count() == 0


def test_join_public_chat_only_for_own_id(socket_client, users, received):
    visitor = socket_client(VISITOR_ID)
    visitor.emit("joinPublicChat", VISITOR_ID)
    assert received(visitor, "error") == []

    visitor.emit("joinPublicChat", "fedcba9876543210fedcba9876543210")
    assert received(visitor, "error")[0]["code"] == "FORBIDDEN"
