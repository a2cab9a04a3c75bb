from tesipedia.extensions import db
from tesipedia.services.identity_service import parse_identity
from datetime import datetime
from sqlalchemy import or_
import uuid

def gen_msg_id():
    return f"msg-{str(uuid.uuid4())[:8]}"

class Message(db.Model):
    __tablename__ = "messages"

    __table_args__ = (
        db.Index("idx_messages_conversation_created", "conversation_id", "created_at"),
        db.Index("idx_messages_order_receiver", "order_id", "receiver"),
    )

    id = db.Column(db.String(50), primary_key=True, default=gen_msg_id)

    # user id or anonymous public id, so no foreign key
    sender = db.Column(db.String(50), nullable=False, index=True)
    receiver = db.Column(db.String(50), nullable=False, index=True)

    order_id = db.Column(db.String(50), db.ForeignKey("orders.id"), nullable=True)
    conversation_id = db.Column(db.String(120), nullable=True)

    text = db.Column(db.Text)
    attachment_url = db.Column(db.String(1024), nullable=True)
    attachment_name = db.Column(db.String(255), nullable=True)

    is_public = db.Column(db.Boolean, default=False, nullable=False)
    sender_name = db.Column(db.String(255), nullable=False)
    sender_ip = db.Column(db.String(64), nullable=True)
    geo_location = db.Column(db.JSON, nullable=True)

    is_read = db.Column(db.Boolean, default=False, nullable=False)
    created_at = db.Column(db.DateTime, default=datetime.utcnow, index=True)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)
    expires_at = db.Column(db.DateTime, nullable=True)

    @property
    def sender_identity(self):
        return parse_identity(self.sender)

    @property
    def receiver_identity(self):
        return parse_identity(self.receiver)

    @property
    def attachment(self):
        if not self.attachment_url:
            return None
        return {"url": self.attachment_url, "fileName": self.attachment_name}

    @classmethod
    def visible(cls, now=None):
        """Filter clause hiding expired public messages."""
        now = now or datetime.utcnow()
        return or_(cls.expires_at.is_(None), cls.expires_at > now)
