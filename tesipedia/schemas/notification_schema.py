from marshmallow import EXCLUDE, fields, validate

from tesipedia.extensions import ma
from tesipedia.models.notification import NOTIFICATION_PRIORITIES, NOTIFICATION_TYPES


class NotificationSchema(ma.Schema):
    id = fields.String()
    user = fields.String(attribute="user_id")
    type = fields.String()
    message = fields.String()
    data = fields.Raw()
    link = fields.String(allow_none=True)
    priority = fields.String()
    is_read = fields.Boolean(data_key="isRead")
    created_at = fields.Method("get_created_at", data_key="createdAt")

    def get_created_at(self, obj):
        return obj.created_at.isoformat() + "Z" if obj.created_at else None


class CreateNotificationSchema(ma.Schema):
    class Meta:
        unknown = EXCLUDE

    user = fields.String(required=True)
    type = fields.String(required=True, validate=validate.OneOf(NOTIFICATION_TYPES))
    message = fields.String(required=True, validate=validate.Length(min=1))
    data = fields.Dict(load_default=dict)
    link = fields.String(load_default=None)
    priority = fields.String(load_default="low", validate=validate.OneOf(NOTIFICATION_PRIORITIES))
    is_read = fields.Boolean(data_key="isRead", load_default=False)


notification_schema = NotificationSchema()
notifications_schema = NotificationSchema(many=True)
