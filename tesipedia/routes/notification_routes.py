from flask import Blueprint, request
from flask_jwt_extended import jwt_required

from tesipedia.models.user import User
from tesipedia.schemas.notification_schema import (
    CreateNotificationSchema,
    notification_schema,
    notifications_schema,
)
from tesipedia.services.notification_service import (
    all_notifications,
    create_notification,
    delete_notification,
    ensure_owner,
    get_notification_or_404,
    get_user_notifications,
    mark_all_read_for_user,
    mark_notification_read,
    notification_stats,
)
from tesipedia.utils.auth_utils import admin_required, current_user
from tesipedia.utils.exceptions import NotFoundError
from tesipedia.utils.pagination import page_params, paginate_query
from tesipedia.utils.response_formatter import success_response

bp = Blueprint("notifications", __name__, url_prefix="/api/v1/notifications")


def _read_filter(value):
    if value is None or value == "":
        return None
    return value.lower() in ("1", "true", "yes")


@bp.route("", methods=["GET"])
@jwt_required()
def get_notifications():
    user = current_user()

    page, limit = page_params(request.args)
    q = get_user_notifications(user.id, is_read=_read_filter(request.args.get("isRead")))
    items, pagination = paginate_query(q, page, limit)

    return success_response({
        "notifications": notifications_schema.dump(items),
        "pagination": pagination,
    })


@bp.route("/stats", methods=["GET"])
@jwt_required()
def stats():
    user = current_user()
    return success_response({"stats": notification_stats(user.id)})


@bp.route("/admin", methods=["GET"])
@jwt_required()
def admin_notifications():
    admin_required(current_user())

    page, limit = page_params(request.args, default_limit=50, max_limit=200)
    items, pagination = paginate_query(all_notifications(), page, limit)

    return success_response({
        "notifications": notifications_schema.dump(items),
        "pagination": pagination,
    })


@bp.route("", methods=["POST"])
@jwt_required()
def send_notification():
    admin_required(current_user())

    data = CreateNotificationSchema().load(request.get_json(silent=True) or {})
    if not User.query.get(data["user"]):
        raise NotFoundError("User not found")

    notif = create_notification(
        data["user"],
        data["type"],
        data["message"],
        data=data["data"],
        link=data["link"],
        priority=data["priority"],
        is_read=data["is_read"],
    )
    return success_response(
        {"notification": notification_schema.dump(notif)},
        message="Notification created",
        status=201,
    )


@bp.route("/<notification_id>/read", methods=["PATCH", "POST"])
@jwt_required()
def mark_read(notification_id):
    user = current_user()
    notif = get_notification_or_404(notification_id)
    ensure_owner(notif, user)

    mark_notification_read(notif)
    return success_response({"notification": notification_schema.dump(notif)})


@bp.route("/mark-all-read", methods=["PATCH", "POST"])
@jwt_required()
def mark_all_read():
    user = current_user()
    updated = mark_all_read_for_user(user.id)
    return success_response({"updated": updated}, message="Notifications marked as read")


@bp.route("/<notification_id>", methods=["DELETE"])
@jwt_required()
def remove_notification(notification_id):
    user = current_user()
    notif = get_notification_or_404(notification_id)
    ensure_owner(notif, user)

    delete_notification(notif)
    return success_response({"deleted": True}, message="Notification deleted")
