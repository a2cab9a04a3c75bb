"""Notification events on the per-user ``notifications:<id>`` room."""
from tesipedia.services.notification_service import (
    delete_notification,
    ensure_owner,
    get_notification_or_404,
    mark_all_read_for_user,
    mark_notification_read,
    notifications_room,
)
from tesipedia.sockets.connections import connection_user, current_connection, id_arg, join


def init_notification_socket(socketio):
    @socketio.on("joinNotifications")
    def handle_join_notifications(*_):
        conn = current_connection()
        user = connection_user(conn)
        join(conn, notifications_room(user.id))

    @socketio.on("markNotificationAsRead")
    def handle_mark_notification_read(notification_id):
        user = connection_user(current_connection())
        notif = get_notification_or_404(id_arg(notification_id, "notificationId"))
        ensure_owner(notif, user)
        mark_notification_read(notif)

    @socketio.on("markAllNotificationsAsRead")
    def handle_mark_all_read(*_):
        user = connection_user(current_connection())
        mark_all_read_for_user(user.id)

    @socketio.on("deleteNotification")
    def handle_delete_notification(notification_id):
        user = connection_user(current_connection())
        notif = get_notification_or_404(id_arg(notification_id, "notificationId"))
        ensure_owner(notif, user)
        delete_notification(notif)
