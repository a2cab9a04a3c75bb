from tesipedia.extensions import db
from datetime import datetime
import uuid

NOTIFICATION_TYPES = (
    "visita",
    "cotizacion",
    "pedido",
    "entrega",
    "mensaje",
    "pago",
    "proyecto",
    "alerta",
    "info",
)

NOTIFICATION_PRIORITIES = ("low", "medium", "high", "normal")


def gen_notif_id():
    return f"notif-{str(uuid.uuid4())[:8]}"


class Notification(db.Model):
    __tablename__ = "notifications"

    id = db.Column(db.String(50), primary_key=True, default=gen_notif_id)
    user_id = db.Column(db.String(50), db.ForeignKey("users.id"), nullable=False, index=True)

    type = db.Column(db.String(50), nullable=False, default="info")
    message = db.Column(db.Text, nullable=False)
    data = db.Column(db.JSON, default=dict)
    link = db.Column(db.String(1024), nullable=True)
    priority = db.Column(db.String(20), default="low")

    is_read = db.Column(db.Boolean, default=False, nullable=False)
    created_at = db.Column(db.DateTime, default=datetime.utcnow)
