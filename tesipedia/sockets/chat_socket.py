"""Chat events: order rooms, live messages, read receipts and typing."""
import logging

from flask import current_app
from flask_socketio import emit

from tesipedia.models.user import ROLE_ADMIN
from tesipedia.schemas.chat_schema import SendMessageSchema, message_schema
from tesipedia.services.chat_service import (
    ensure_order_access,
    get_message_or_404,
    mark_message_read,
    messages_for_conversation,
    send_message,
    shares_conversation,
)
from tesipedia.services.identity_service import parse_identity
from tesipedia.sockets.connections import connection_user, current_connection, id_arg, join
from tesipedia.sockets.rooms import RoomKind, emit_to, personal_room, room_name
from tesipedia.utils.exceptions import BadRequestError, ForbiddenError

logger = logging.getLogger(__name__)


def broadcast_new_message(message):
    """Order-scoped messages go to the order room, others to both parties."""
    payload = message_schema.dump(message)
    if message.order_id:
        rooms = [room_name(RoomKind.ORDER, message.order_id)]
    else:
        rooms = [
            personal_room(message.sender_identity),
            personal_room(message.receiver_identity),
        ]
    emit_to("newMessage", payload, rooms)


def broadcast_message_read(message, reader):
    emit_to(
        "messageRead",
        {
            "messageId": message.id,
            "conversationId": message.conversation_id,
            "readBy": reader.id,
            "isRead": True,
        },
        personal_room(message.sender_identity),
    )


def _may_signal(conn, receiver):
    """Typing indicators only go to someone the connection already chats with."""
    if conn.identity.is_anonymous and receiver.id == current_app.config.get("DEFAULT_ADMIN_ID"):
        return True
    if receiver.is_anonymous and (conn.role or "").lower() == ROLE_ADMIN:
        return bool(messages_for_conversation(receiver.id, public_only=True))
    return shares_conversation(conn.identity.id, receiver.id)


def init_chat_socket(socketio):
    @socketio.on("joinOrderChat")
    def handle_join_order_chat(order_id):
        conn = current_connection()
        if conn.identity.is_anonymous:
            raise ForbiddenError("Public visitors cannot join order chats")

        order_id = id_arg(order_id, "orderId")
        ensure_order_access(order_id, connection_user(conn))
        join(conn, room_name(RoomKind.ORDER, order_id))
        logger.info("%s joined order chat %s", conn.identity.id, order_id)

    @socketio.on("joinPublicChat")
    def handle_join_public_chat(public_id):
        conn = current_connection()
        public_id = id_arg(public_id, "publicId")
        if not conn.identity.is_anonymous or conn.identity.id != public_id:
            raise ForbiddenError("Not authorized")
        join(conn, room_name(RoomKind.PUBLIC, public_id))

    @socketio.on("sendMessage")
    def handle_send_message(data):
        conn = current_connection()
        payload = SendMessageSchema().load(data or {})

        user = None
        if conn.identity.is_anonymous:
            # a visitor always speaks as the public id it connected with
            payload["public_id"] = conn.identity.id
            if not payload.get("name"):
                payload["name"] = conn.name
        else:
            user = connection_user(conn)

        msg = send_message(user, payload)
        broadcast_new_message(msg)

    @socketio.on("markAsRead")
    def handle_mark_as_read(message_id):
        conn = current_connection()
        msg = get_message_or_404(id_arg(message_id, "messageId"))
        was_read = msg.is_read
        mark_message_read(msg, conn.identity)
        if not was_read:
            broadcast_message_read(msg, conn.identity)

    @socketio.on("typing")
    def handle_typing(data):
        conn = current_connection()
        data = data if isinstance(data, dict) else {}
        order_id = data.get("orderId")
        receiver = parse_identity(data.get("receiver"))

        if order_id:
            room = room_name(RoomKind.ORDER, order_id)
            if room not in conn.rooms:
                raise ForbiddenError("Join the order chat first")
        elif receiver is not None:
            if not _may_signal(conn, receiver):
                raise ForbiddenError("Not part of a conversation with this receiver")
            room = personal_room(receiver)
        else:
            raise BadRequestError("orderId or receiver is required")

        emit(
            "userTyping",
            {
                "userId": conn.identity.id,
                "name": conn.name,
                "orderId": order_id,
                "isTyping": bool(data.get("isTyping")),
            },
            to=room,
            include_self=False,
        )
