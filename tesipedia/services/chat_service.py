import logging
import re
import uuid
from datetime import datetime, timedelta

from flask import current_app
from sqlalchemy import and_, or_

from tesipedia.extensions import db
from tesipedia.models.message import Message
from tesipedia.models.order import Order
from tesipedia.services import notification_service
from tesipedia.services.attachment_service import delete_chat_file
from tesipedia.services.geo_service import client_ip, lookup_ip
from tesipedia.services.identity_service import is_public_id, is_user_id, resolve_parties
from tesipedia.utils.exceptions import BadRequestError, ForbiddenError, NotFoundError

logger = logging.getLogger(__name__)

# ---------------------------------------
# 1. TEXT SANITIZING
# ---------------------------------------

_SCRIPT_RE = re.compile(r"<(script|style)\b[^>]*>.*?</\1\s*>", re.IGNORECASE | re.DOTALL)
_TAG_RE = re.compile(r"<[^>]*>")


def sanitize_text(text):
    """Strip markup from a chat message; blank results become ``None``."""
    if text is None:
        return None
    clean = _SCRIPT_RE.sub("", text)
    clean = _TAG_RE.sub("", clean).strip()
    return clean or None


# ---------------------------------------
# 2. CONVERSATION KEYS
# ---------------------------------------

def generate_public_id():
    return uuid.uuid4().hex


def derive_conversation_id(sender, receiver, is_public, explicit_id=None):
    """Stable grouping key for a message.

    A client-pinned id wins. Public threads are keyed by the visitor's public
    id. Direct chats use both participant ids sorted and joined with ``_`` so
    either side produces the same key; ``orderId`` never takes part.
    """
    if explicit_id:
        return explicit_id

    if is_public:
        for party in (sender, receiver):
            if party is not None and party.is_anonymous:
                return party.id
        return sender.id if sender is not None else None

    if sender is None or receiver is None:
        return None
    first, second = sorted((sender.id, receiver.id))
    return f"{first}_{second}"


def conversation_id_for(message):
    """Stored key, or the same rule applied to rows saved without one."""
    if message.conversation_id:
        return message.conversation_id
    return derive_conversation_id(
        message.sender_identity,
        message.receiver_identity,
        message.is_public,
    )


# ---------------------------------------
# 3. SENDING
# ---------------------------------------

def check_pinned_conversation(conversation_id, parties):
    """Validate a client-supplied conversation id for ``parties``.

    A public thread can only be pinned to its own visitor id. A direct chat
    can start a fresh thread, but an existing one only takes messages
    between its own participants.
    """
    if not conversation_id:
        return None

    if parties.is_public:
        visitor = next(p for p in (parties.sender, parties.receiver) if p.is_anonymous)
        if conversation_id != visitor.id:
            raise ForbiddenError("Public threads are keyed by the visitor's own public id")
        return conversation_id

    if is_public_id(conversation_id):
        raise ForbiddenError("Direct messages cannot be filed under a public thread")

    # ids named in the key are granted read access to the thread
    party_ids = {parties.sender.id, parties.receiver.id}
    if any(is_user_id(part) and part not in party_ids for part in conversation_id.split("_")):
        raise ForbiddenError("You are not part of this conversation")

    exists = visible_messages().filter(Message.conversation_id == conversation_id).first()
    if exists and not (
        is_conversation_party(conversation_id, parties.sender.id)
        and is_conversation_party(conversation_id, parties.receiver.id)
    ):
        raise ForbiddenError("You are not part of this conversation")
    return conversation_id


def _expiry(is_public):
    days = current_app.config.get("PUBLIC_MESSAGE_TTL_DAYS") or 0
    if is_public and days > 0:
        return datetime.utcnow() + timedelta(days=days)
    return None


def send_message(user, data, attachment=None):
    """Resolve, key, store and notify. Broadcasting is up to the caller.

    ``data`` is a loaded ``SendMessageSchema`` dict. For socket clients the
    connection's own public id is passed in ``data["public_id"]``.
    """
    order_id = data.get("order_id")
    parties = resolve_parties(
        user,
        receiver=data.get("receiver"),
        order_id=order_id,
        public_id=data.get("public_id"),
        display_name=data.get("name"),
    )

    text = sanitize_text(data.get("text"))
    attachment = attachment or data.get("attachment")
    if not text and not attachment:
        raise BadRequestError("Message text or attachment is required")

    if order_id and not Order.query.get(order_id):
        raise NotFoundError("Order not found")

    ip = client_ip()

    msg = Message(
        sender=parties.sender.id,
        receiver=parties.receiver.id,
        order_id=order_id,
        conversation_id=derive_conversation_id(
            parties.sender,
            parties.receiver,
            parties.is_public,
            check_pinned_conversation(data.get("conversation_id"), parties),
        ),
        text=text,
        attachment_url=attachment.get("url") if attachment else None,
        attachment_name=attachment.get("fileName") if attachment else None,
        is_public=parties.is_public,
        sender_name=parties.sender_name,
        sender_ip=ip,
        geo_location=lookup_ip(ip),
        is_read=False,
        expires_at=_expiry(parties.is_public),
    )
    db.session.add(msg)
    db.session.commit()

    logger.info("Stored message %s in conversation %s", msg.id, msg.conversation_id)

    notification_service.notify_new_message(msg)
    return msg


# ---------------------------------------
# 4. QUERIES
# ---------------------------------------

def visible_messages():
    return Message.query.filter(Message.visible())


def get_message_or_404(message_id):
    msg = visible_messages().filter(Message.id == message_id).first()
    if not msg:
        raise NotFoundError("Message not found")
    return msg


def messages_for_order(order_id, public_only=False):
    q = visible_messages().filter(Message.order_id == order_id)
    if public_only:
        q = q.filter(Message.is_public == True)
    return q.order_by(Message.created_at.asc()).all()


def messages_for_conversation(conversation_id, public_only=False):
    q = visible_messages().filter(Message.conversation_id == conversation_id)
    if public_only:
        q = q.filter(Message.is_public == True)
    return q.order_by(Message.created_at.asc()).all()


def messages_involving(viewer_id, is_public=None, include_all_public=False):
    involved = or_(Message.sender == viewer_id, Message.receiver == viewer_id)
    if include_all_public:
        involved = or_(involved, Message.is_public == True)

    q = visible_messages().filter(involved)
    if is_public is not None:
        q = q.filter(Message.is_public == is_public)
    return q.order_by(Message.created_at.desc()).all()


def shares_conversation(first_id, second_id):
    """Whether the two ids have exchanged at least one visible message."""
    return visible_messages().filter(or_(
        and_(Message.sender == first_id, Message.receiver == second_id),
        and_(Message.sender == second_id, Message.receiver == first_id),
    )).first() is not None


def all_messages_query():
    return visible_messages().order_by(Message.created_at.desc())


def search_messages(term):
    term = (term or "").strip()
    if not term:
        raise BadRequestError("A search query is required")

    escaped = term.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")
    pattern = f"%{escaped}%"
    return (
        visible_messages()
        .filter(or_(
            Message.text.ilike(pattern, escape="\\"),
            Message.attachment_name.ilike(pattern, escape="\\"),
        ))
        .order_by(Message.created_at.desc())
        .all()
    )


# ---------------------------------------
# 5. ACCESS CHECKS
# ---------------------------------------

def ensure_order_access(order_id, user):
    order = Order.query.get(order_id)
    if not order:
        raise NotFoundError("Order not found")
    if not user.is_admin and not order.has_participant(user.id):
        raise ForbiddenError("You are not part of this order")
    return order


def is_conversation_party(conversation_id, identity_id):
    if identity_id in conversation_id.split("_"):
        return True
    involved = visible_messages().filter(
        Message.conversation_id == conversation_id,
        or_(Message.sender == identity_id, Message.receiver == identity_id),
    ).first()
    return involved is not None


def ensure_conversation_access(conversation_id, user):
    if user.is_admin:
        return
    if is_public_id(conversation_id):
        raise ForbiddenError("Public conversations are only visible to administrators")
    if not is_conversation_party(conversation_id, user.id):
        raise ForbiddenError("You are not part of this conversation")


# ---------------------------------------
# 6. UPDATES
# ---------------------------------------

def mark_message_read(message, reader):
    """Only the stored receiver may acknowledge; repeating is a no-op."""
    if message.receiver != reader.id:
        raise ForbiddenError("Not authorized to mark this message as read")

    if not message.is_read:
        message.is_read = True
        db.session.commit()
    return message


def mark_order_messages_read(order_id, reader_id):
    msgs = visible_messages().filter(
        Message.order_id == order_id,
        Message.receiver == reader_id,
        Message.is_read == False,
    ).all()

    for m in msgs:
        m.is_read = True
    db.session.commit()
    return msgs


def update_message(message, changes):
    if "text" in changes:
        message.text = sanitize_text(changes["text"])
    if "is_read" in changes:
        message.is_read = changes["is_read"]
    db.session.commit()
    return message


def delete_message(message):
    attachment_url = message.attachment_url
    db.session.delete(message)
    db.session.commit()

    if attachment_url:
        delete_chat_file(attachment_url)


def purge_expired_messages(now=None):
    now = now or datetime.utcnow()
    expired = Message.query.filter(
        Message.expires_at.isnot(None),
        Message.expires_at <= now,
    ).all()

    urls = [m.attachment_url for m in expired if m.attachment_url]
    for m in expired:
        db.session.delete(m)
    db.session.commit()

    for url in urls:
        delete_chat_file(url)
    return len(expired)
