"""Folding flat message lists into per-conversation summaries.

Conversations are never stored. Every "list my conversations" view loads
the messages that concern the viewer and groups them here by conversation
id, keeping the latest message and the viewer's unread count per group.
"""
import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Dict, List, Optional

from tesipedia.models.user import User
from tesipedia.services.chat_service import conversation_id_for, messages_involving
from tesipedia.services.identity_service import is_user_id

logger = logging.getLogger(__name__)

FALLBACK_NAME = "Usuario"

SCOPE_ALL = "all"
SCOPE_AUTHENTICATED = "authenticated"
SCOPE_PUBLIC = "public"


@dataclass
class Counterpart:
    id: str = ""
    name: str = FALLBACK_NAME


@dataclass
class ConversationSummary:
    conversation_id: str
    is_public: bool
    counterpart: Counterpart
    last_message: Optional[str] = None
    last_message_date: Optional[datetime] = None
    unread_count: int = 0
    messages: List = field(default_factory=list)

    def absorb(self, message, viewer_id):
        self.messages.append(message)

        created = message.created_at
        if self.last_message_date is None or (created is not None and created > self.last_message_date):
            self.last_message = message.text or message.attachment_name
            self.last_message_date = created

        if is_unread_for(message, viewer_id):
            self.unread_count += 1


def is_unread_for(message, viewer_id):
    return (
        message.receiver == viewer_id
        and not message.is_read
        and message.sender != viewer_id
    )


def _counterpart_of(message, viewer_id):
    sender = message.sender_identity
    receiver = message.receiver_identity

    if message.is_public:
        visitor = next((p for p in (sender, receiver) if p is not None and p.is_anonymous), None)
        if visitor is not None and visitor.id != viewer_id:
            return visitor
        # the viewer is the visitor, or an operator sees a malformed row
        if sender is not None and sender.id == viewer_id:
            return receiver
        return sender

    for party in (sender, receiver):
        if party is not None and party.id != viewer_id:
            return party
    return None


def _counterpart_name(summary, display_names):
    counterpart_id = summary.counterpart.id
    if counterpart_id and display_names.get(counterpart_id):
        return display_names[counterpart_id]

    snapshots = [
        m for m in summary.messages
        if m.sender == counterpart_id and m.sender_name
    ]
    if snapshots:
        latest = max(snapshots, key=lambda m: m.created_at or datetime.min)
        return latest.sender_name
    return FALLBACK_NAME


def build_conversations(messages, viewer_id, display_names=None) -> List[ConversationSummary]:
    """Group ``messages`` by conversation, newest activity first.

    Input order does not matter. Messages without a derivable conversation
    id are logged and skipped; a group whose counterpart cannot be found is
    still returned with an empty counterpart id.
    """
    display_names = display_names or {}
    groups: Dict[str, ConversationSummary] = {}

    for message in messages:
        conversation_id = conversation_id_for(message)
        if not conversation_id:
            logger.warning(
                "Skipping message %s: no conversation id could be derived",
                getattr(message, "id", None),
            )
            continue

        summary = groups.get(conversation_id)
        if summary is None:
            counterpart = _counterpart_of(message, viewer_id)
            summary = ConversationSummary(
                conversation_id=conversation_id,
                is_public=bool(message.is_public),
                counterpart=Counterpart(id=counterpart.id if counterpart else ""),
            )
            groups[conversation_id] = summary

        summary.absorb(message, viewer_id)

    for summary in groups.values():
        summary.counterpart.name = _counterpart_name(summary, display_names)
        summary.messages.sort(key=lambda m: m.created_at or datetime.min)

    return sorted(
        groups.values(),
        key=lambda s: s.last_message_date or datetime.min,
        reverse=True,
    )


def display_names_for(messages):
    ids = set()
    for m in messages:
        ids.update(v for v in (m.sender, m.receiver) if is_user_id(v))
    if not ids:
        return {}

    users = User.query.filter(User.id.in_(ids)).all()
    return {u.id: u.full_name for u in users if u.full_name}


def list_conversations(viewer, scope=SCOPE_ALL):
    """Conversation summaries for ``viewer``.

    Admins operate the public channel, so their ``all`` and ``public`` views
    include every public message even when they are neither party.
    """
    if scope == SCOPE_AUTHENTICATED:
        messages = messages_involving(viewer.id, is_public=False)
    elif scope == SCOPE_PUBLIC:
        messages = messages_involving(viewer.id, is_public=True, include_all_public=viewer.is_admin)
    else:
        messages = messages_involving(viewer.id, include_all_public=viewer.is_admin)

    return build_conversations(messages, viewer.id, display_names_for(messages))
