"""Who is talking to whom.

Chat participants are either registered users (``usr-<uuid4>`` ids) or
anonymous visitors identified by a 32 character lowercase hex public id.
Both are carried through the chat pipeline as :class:`Identity` values so
that the rest of the code never has to guess what a raw id string is.
"""
import re
from dataclasses import dataclass
from typing import Optional

from flask import current_app

from tesipedia.models.order import Order
from tesipedia.models.user import User
from tesipedia.utils.exceptions import (
    BadRequestError,
    ForbiddenError,
    NotFoundError,
    ServiceError,
)

PUBLIC_ID_RE = re.compile(r"^[0-9a-f]{32}$")
USER_ID_RE = re.compile(
    r"^usr-[0-9a-f]{8}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{12}$"
)


def is_public_id(value) -> bool:
    return isinstance(value, str) and bool(PUBLIC_ID_RE.match(value))


def is_user_id(value) -> bool:
    return isinstance(value, str) and bool(USER_ID_RE.match(value))


@dataclass(frozen=True)
class Identity:
    id: str

    is_anonymous = False

    def __str__(self):
        return self.id


@dataclass(frozen=True)
class UserIdentity(Identity):
    """A registered account."""


@dataclass(frozen=True)
class VisitorIdentity(Identity):
    """An anonymous visitor known only by its public id."""

    is_anonymous = True


def parse_identity(value) -> Optional[Identity]:
    """Turn a stored sender/receiver value back into an Identity.

    This is the single place where a raw id string is classified.
    """
    if value is None:
        return None
    value = str(value).strip()
    if not value:
        return None
    if is_public_id(value):
        return VisitorIdentity(value)
    return UserIdentity(value)


@dataclass(frozen=True)
class ResolvedParties:
    sender: Identity
    sender_name: str
    is_public: bool
    receiver: Identity


def anonymous_label():
    return current_app.config.get("ANONYMOUS_SENDER_NAME") or "Usuario Anónimo"


def default_admin_identity():
    admin_id = current_app.config.get("DEFAULT_ADMIN_ID")
    if not admin_id:
        raise ServiceError(
            code="NO_DEFAULT_ADMIN",
            message="No administrator is configured to receive messages",
            status=503,
        )
    return UserIdentity(admin_id)


def _require_existing_user(user_id):
    if not User.query.get(user_id):
        raise NotFoundError("Receiver not found")


def resolve_parties(user=None, receiver=None, order_id=None, public_id=None, display_name=None):
    """Work out sender, receiver and publicness for an inbound message.

    ``user`` is the authenticated account or ``None``. Rules, first match wins:

    1. admins may write to any user id or public id (``receiver`` required);
    2. writers may write to user ids; when an ``order_id`` is given and the
       receiver is not the default admin, an order must link the writer to
       that receiver as client;
    3. any other role is refused;
    4. anonymous callers need a ``public_id``, never name an order and
       always write to the default admin;
    5. everyone else is refused.
    """
    if user is not None:
        sender = UserIdentity(user.id)
        sender_name = user.full_name or user.email or "Usuario"

        if user.is_admin:
            if not receiver:
                raise BadRequestError("Receiver is required")
            if is_public_id(receiver):
                return ResolvedParties(sender, sender_name, True, VisitorIdentity(receiver))
            if not is_user_id(receiver):
                raise BadRequestError("Invalid receiver id", code="INVALID_ID")
            _require_existing_user(receiver)
            return ResolvedParties(sender, sender_name, False, UserIdentity(receiver))

        if user.is_writer:
            if not receiver:
                raise BadRequestError("Receiver is required")
            if not is_user_id(receiver):
                raise BadRequestError("Invalid receiver id", code="INVALID_ID")

            if receiver != current_app.config.get("DEFAULT_ADMIN_ID") and order_id:
                order = Order.query.filter_by(
                    id=order_id,
                    writer_id=user.id,
                    client_id=receiver,
                ).first()
                if not order:
                    raise ForbiddenError("Not authorized to message this client about this order")

            _require_existing_user(receiver)
            return ResolvedParties(sender, sender_name, False, UserIdentity(receiver))

        raise ForbiddenError("Your role is not allowed to start chats")

    if public_id:
        if not is_public_id(public_id):
            raise BadRequestError("Invalid public id", code="INVALID_ID")
        if order_id:
            raise ForbiddenError("Public visitors cannot post to order chats")
        name = (display_name or "").strip()[:100] or anonymous_label()
        return ResolvedParties(VisitorIdentity(public_id), name, True, default_admin_identity())

    raise BadRequestError(
        "Authentication or a public id is required to send messages",
        code="IDENTITY_REQUIRED",
    )
