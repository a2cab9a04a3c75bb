"""Socket.IO connection lifecycle and error handling.

Clients connect with ``auth={"token": <jwt>}`` or, for anonymous visitors,
``auth={"isPublic": True, "userId": <publicId>}``. Any exception raised by
an event handler becomes an ``error`` event for that client only.
"""
import logging

from flask import current_app, request
from flask_jwt_extended import decode_token
from flask_jwt_extended.exceptions import JWTExtendedException
from flask_socketio import ConnectionRefusedError, emit
from jwt.exceptions import PyJWTError
from marshmallow import ValidationError

from tesipedia.extensions import db
from tesipedia.models.user import User
from tesipedia.services.identity_service import (
    UserIdentity,
    VisitorIdentity,
    anonymous_label,
    is_public_id,
)
from tesipedia.sockets.chat_socket import init_chat_socket
from tesipedia.sockets.connections import (
    Connection,
    get_connection,
    join,
    leave_all,
    register,
    unregister,
)
from tesipedia.sockets.notification_socket import init_notification_socket
from tesipedia.sockets.rooms import RoomKind, room_name
from tesipedia.utils.exceptions import ServiceError
from tesipedia.utils.response_formatter import error_body

logger = logging.getLogger(__name__)


def authenticate(auth):
    auth = auth if isinstance(auth, dict) else {}

    if auth.get("isPublic"):
        public_id = auth.get("userId") or auth.get("publicId")
        if not is_public_id(public_id):
            raise ConnectionRefusedError("Invalid public id")
        return Connection(VisitorIdentity(public_id), name=anonymous_label())

    token = auth.get("token")
    if not token:
        raise ConnectionRefusedError("Token not provided")

    try:
        claims = decode_token(token)
    except (PyJWTError, JWTExtendedException) as exc:
        logger.info("Socket token rejected: %s", exc)
        raise ConnectionRefusedError("Invalid token")

    user = User.query.get(claims.get(current_app.config.get("JWT_IDENTITY_CLAIM", "sub")))
    if not user:
        raise ConnectionRefusedError("Invalid user")
    return Connection(UserIdentity(user.id), role=user.role, name=user.full_name)


def init_sockets(socketio):
    @socketio.on("connect")
    def handle_connect(auth=None):
        conn = authenticate(auth)
        register(request.sid, conn)

        if conn.identity.is_anonymous:
            join(conn, room_name(RoomKind.PUBLIC, conn.identity.id))
        else:
            join(conn, room_name(RoomKind.USER, conn.identity.id))
            join(conn, room_name(RoomKind.NOTIFICATIONS, conn.identity.id))

        logger.info(
            "%s connection %s for %s",
            "Public" if conn.identity.is_anonymous else "Authenticated",
            request.sid,
            conn.identity.id,
        )

    @socketio.on("disconnect")
    def handle_disconnect(*_):
        sid = request.sid
        conn = get_connection(sid)
        if conn is None:
            return
        leave_all(conn, sid)
        unregister(sid)
        logger.info("Connection %s for %s closed", sid, conn.identity.id)

    @socketio.on_error_default
    def handle_socket_error(e):
        db.session.rollback()

        if isinstance(e, ServiceError):
            payload = error_body(e.code, e.message, e.details)
        elif isinstance(e, ValidationError):
            payload = error_body("VALIDATION_ERROR", "Invalid payload", e.messages)
        else:
            logger.exception("Unhandled socket error for %s", request.sid)
            payload = error_body("SERVER_ERROR", "Internal server error")

        emit("error", payload, to=request.sid)

    init_chat_socket(socketio)
    init_notification_socket(socketio)
