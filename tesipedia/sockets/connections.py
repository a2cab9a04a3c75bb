"""Per-process registry of live socket connections (sid -> state)."""
from dataclasses import dataclass, field
from typing import Dict, Optional, Set

from flask import request
from flask_socketio import join_room, leave_room

from tesipedia.models.user import User
from tesipedia.services.identity_service import Identity
from tesipedia.utils.exceptions import BadRequestError, ForbiddenError, UnauthorizedError


@dataclass
class Connection:
    identity: Identity
    role: Optional[str] = None
    name: Optional[str] = None
    rooms: Set[str] = field(default_factory=set)


_connections: Dict[str, Connection] = {}


def register(sid, conn):
    _connections[sid] = conn


def unregister(sid):
    return _connections.pop(sid, None)


def get_connection(sid) -> Optional[Connection]:
    return _connections.get(sid)


def current_connection() -> Connection:
    conn = _connections.get(request.sid)
    if conn is None:
        raise UnauthorizedError("Socket session is not authenticated")
    return conn


def id_arg(value, key):
    """Accept either a bare id or a ``{key: id}`` payload."""
    if isinstance(value, dict):
        value = value.get(key)
    if not isinstance(value, str) or not value.strip():
        raise BadRequestError(f"{key} is required")
    return value.strip()


def join(conn, room):
    join_room(room)
    conn.rooms.add(room)


def leave_all(conn, sid):
    for room in list(conn.rooms):
        leave_room(room, sid=sid)
    conn.rooms.clear()


def connection_user(conn):
    """The account behind an authenticated connection."""
    if conn.identity.is_anonymous:
        raise ForbiddenError("Not authorized")
    user = User.query.get(conn.identity.id)
    if not user:
        raise UnauthorizedError("Invalid user")
    return user
