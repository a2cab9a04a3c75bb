import logging

from flask import current_app

from tesipedia.extensions import db, socketio
from tesipedia.models.notification import Notification
from tesipedia.schemas.notification_schema import notification_schema
from tesipedia.sockets.rooms import RoomKind, emit_to, room_name
from tesipedia.utils.exceptions import ForbiddenError, NotFoundError

logger = logging.getLogger(__name__)


def notifications_room(user_id):
    return room_name(RoomKind.NOTIFICATIONS, user_id)


def get_user_notifications(user_id, is_read=None):
    q = Notification.query.filter_by(user_id=user_id)
    if is_read is not None:
        q = q.filter_by(is_read=is_read)
    return q.order_by(Notification.created_at.desc())


def all_notifications():
    return Notification.query.order_by(Notification.created_at.desc())


def get_notification_or_404(notification_id):
    notif = Notification.query.get(notification_id)
    if not notif:
        raise NotFoundError("Notification not found")
    return notif


def ensure_owner(notification, user):
    if notification.user_id != user.id and not user.is_admin:
        raise ForbiddenError("Not authorized for this notification")


def notification_stats(user_id):
    total = Notification.query.filter_by(user_id=user_id).count()
    unread = Notification.query.filter_by(user_id=user_id, is_read=False).count()
    return {"total": total, "unread": unread, "read": total - unread}


def create_notification(user_id, notif_type, message, data=None, link=None, priority="low", is_read=False):
    notif = Notification(
        user_id=user_id,
        type=notif_type,
        message=message,
        data=data or {},
        link=link,
        priority=priority,
        is_read=is_read,
    )
    db.session.add(notif)
    db.session.commit()

    emit_to("newNotification", notification_schema.dump(notif), notifications_room(user_id))
    return notif


def mark_notification_read(notification):
    notification.is_read = True
    db.session.commit()

    emit_to(
        "notificationRead",
        {"notificationId": notification.id, "isRead": True},
        notifications_room(notification.user_id),
    )
    return notification


def mark_all_read_for_user(user_id):
    updated = Notification.query.filter_by(user_id=user_id, is_read=False).update({"is_read": True})
    db.session.commit()

    emit_to("allNotificationsRead", {"updated": updated}, notifications_room(user_id))
    return updated


def delete_notification(notification):
    notification_id, user_id = notification.id, notification.user_id
    db.session.delete(notification)
    db.session.commit()

    emit_to("notificationDeleted", {"notificationId": notification_id}, notifications_room(user_id))


# ---------------------------------------
# Message side channel
# ---------------------------------------

def message_notification_payload(message):
    """Notification fields for a stored message, or ``None`` for visitors."""
    receiver = message.receiver_identity
    if receiver is None or receiver.is_anonymous:
        return None

    return {
        "user_id": receiver.id,
        "notif_type": "mensaje",
        "message": f"New message from {message.sender_name}",
        "data": {
            "orderId": message.order_id,
            "sender": message.sender,
            "isPublic": message.is_public,
        },
    }


def _deliver(payload):
    try:
        create_notification(**payload)
    except Exception:
        db.session.rollback()
        logger.exception("Could not create message notification for %s", payload.get("user_id"))


def _deliver_in_context(app, payload):
    with app.app_context():
        _deliver(payload)


class NotificationDispatcher:
    """Best-effort, non-transactional notification side effect.

    The message is already committed when this runs; a failure here is
    logged and never reaches the sender.
    """

    def dispatch(self, payload):
        if current_app.config.get("NOTIFICATIONS_ASYNC", True):
            app = current_app._get_current_object()
            socketio.start_background_task(_deliver_in_context, app, payload)
        else:
            _deliver(payload)


dispatcher = NotificationDispatcher()


def notify_new_message(message):
    payload = message_notification_payload(message)
    if payload is None:
        return False
    dispatcher.dispatch(payload)
    return True
