"""Socket.IO room names shared by the chat and notification gateways."""
from enum import Enum

from tesipedia.extensions import socketio


class RoomKind(str, Enum):
    USER = "user"
    PUBLIC = "public"
    ORDER = "order"
    NOTIFICATIONS = "notifications"


def room_name(kind: RoomKind, ident) -> str:
    return f"{RoomKind(kind).value}:{ident}"


def personal_room(identity) -> str:
    """The direct-delivery room of a chat participant."""
    kind = RoomKind.PUBLIC if identity.is_anonymous else RoomKind.USER
    return room_name(kind, identity.id)


def emit_to(event, payload, rooms):
    """Emit ``event`` once to each distinct room."""
    if isinstance(rooms, str):
        rooms = [rooms]
    for room in dict.fromkeys(r for r in rooms if r):
        socketio.emit(event, payload, to=room)
