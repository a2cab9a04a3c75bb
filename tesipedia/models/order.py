from tesipedia.extensions import db
from datetime import datetime
import uuid


def gen_order_id():
    return f"ORD-{str(uuid.uuid4())[:8]}"


class Order(db.Model):
    __tablename__ = "orders"

    id = db.Column(db.String(50), primary_key=True, default=gen_order_id)
    title = db.Column(db.String(255), nullable=False)

    client_id = db.Column(
        db.String(50),
        db.ForeignKey("users.id"),
        nullable=True
    )

    writer_id = db.Column(
        db.String(50),
        db.ForeignKey("users.id"),
        nullable=True
    )

    created_at = db.Column(db.DateTime, default=datetime.utcnow)

    def has_participant(self, user_id):
        return user_id is not None and user_id in (self.client_id, self.writer_id)
