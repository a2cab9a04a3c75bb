from marshmallow import EXCLUDE, fields, post_load, validate

from tesipedia.extensions import ma


def _iso(value):
    return value.isoformat() + "Z" if value else None


class AttachmentSchema(ma.Schema):
    class Meta:
        unknown = EXCLUDE

    url = fields.String(required=True, validate=validate.Length(min=1, max=1024))
    file_name = fields.String(data_key="fileName", load_default=None, validate=validate.Length(max=255))


class SendMessageSchema(ma.Schema):
    """Inbound ``sendMessage`` payload, shared by REST and socket clients."""

    class Meta:
        unknown = EXCLUDE

    text = fields.String(load_default=None, validate=validate.Length(max=5000))
    receiver = fields.String(load_default=None)
    order_id = fields.String(data_key="orderId", load_default=None)
    public_id = fields.String(data_key="publicId", load_default=None)
    name = fields.String(load_default=None)
    conversation_id = fields.String(
        data_key="conversationId", load_default=None, validate=validate.Length(max=120)
    )
    attachment = fields.Nested(AttachmentSchema, load_default=None)

    @post_load
    def blank_to_none(self, data, **kwargs):
        for key, value in data.items():
            if isinstance(value, str):
                value = value.strip()
                data[key] = value or None
        return data


class UpdateMessageSchema(ma.Schema):
    class Meta:
        unknown = EXCLUDE

    text = fields.String(validate=validate.Length(max=5000))
    is_read = fields.Boolean(data_key="isRead")


class MessageSchema(ma.Schema):
    id = fields.String()
    sender = fields.String()
    receiver = fields.String()
    order_id = fields.String(data_key="orderId", allow_none=True)
    conversation_id = fields.String(data_key="conversationId", allow_none=True)
    text = fields.String(allow_none=True)
    attachment = fields.Method("get_attachment")
    is_public = fields.Boolean(data_key="isPublic")
    sender_name = fields.String(data_key="senderName")
    is_read = fields.Boolean(data_key="isRead")
    created_at = fields.Method("get_created_at", data_key="createdAt")

    def get_attachment(self, obj):
        return obj.attachment

    def get_created_at(self, obj):
        return _iso(obj.created_at)


class AdminMessageSchema(MessageSchema):
    sender_ip = fields.String(data_key="senderIP", allow_none=True)
    geo_location = fields.Raw(data_key="geoLocation", allow_none=True)


class CounterpartSchema(ma.Schema):
    id = fields.String()
    name = fields.String()


class ConversationSchema(ma.Schema):
    conversation_id = fields.String(data_key="conversationId")
    counterpart = fields.Nested(CounterpartSchema)
    is_public = fields.Boolean(data_key="isPublic")
    last_message = fields.String(data_key="lastMessage", allow_none=True)
    last_message_date = fields.Method("get_last_message_date", data_key="lastMessageDate")
    unread_count = fields.Integer(data_key="unreadCount")
    messages = fields.Nested(MessageSchema, many=True)

    def get_last_message_date(self, obj):
        return _iso(obj.last_message_date)


message_schema = MessageSchema()
messages_schema = MessageSchema(many=True)
admin_messages_schema = AdminMessageSchema(many=True)
conversations_schema = ConversationSchema(many=True)
