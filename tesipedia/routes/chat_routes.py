from flask import Blueprint, request, current_app, send_from_directory
from flask_jwt_extended import jwt_required

from tesipedia.extensions import limiter
from tesipedia.schemas.chat_schema import (
    SendMessageSchema,
    UpdateMessageSchema,
    admin_messages_schema,
    conversations_schema,
    message_schema,
    messages_schema,
)
from tesipedia.services import chat_service
from tesipedia.services.attachment_service import save_chat_file
from tesipedia.services.conversation_service import (
    SCOPE_ALL,
    SCOPE_AUTHENTICATED,
    SCOPE_PUBLIC,
    list_conversations,
)
from tesipedia.services.identity_service import is_public_id
from tesipedia.sockets.chat_socket import broadcast_message_read, broadcast_new_message
from tesipedia.utils.auth_utils import admin_required, current_user
from tesipedia.utils.exceptions import BadRequestError, ForbiddenError
from tesipedia.utils.pagination import page_params, paginate_query
from tesipedia.utils.response_formatter import success_response

bp = Blueprint("chat", __name__, url_prefix="/api/v1/chat")


def public_chat_limit():
    return current_app.config.get("PUBLIC_CHAT_RATE_LIMIT", "30 per minute")


def _require_public_id(public_id):
    if not is_public_id(public_id):
        raise BadRequestError("Invalid public id", code="INVALID_ID")


# -----------------------------------------------------------
# ANONYMOUS VISITORS
# -----------------------------------------------------------
@bp.route("/public-id", methods=["POST"])
@limiter.limit(public_chat_limit)
def create_public_id():
    return success_response(
        {"publicId": chat_service.generate_public_id()},
        message="Public id generated",
    )


@bp.route("/public/conversation/<public_id>", methods=["GET"])
def public_conversation(public_id):
    _require_public_id(public_id)
    msgs = chat_service.messages_for_conversation(public_id, public_only=True)
    return success_response({"messages": messages_schema.dump(msgs)})


@bp.route("/public/<order_id>", methods=["GET"])
def public_order_messages(order_id):
    msgs = chat_service.messages_for_order(order_id, public_only=True)
    return success_response({"messages": messages_schema.dump(msgs)})


# -----------------------------------------------------------
# SEND MESSAGE (token optional)
# -----------------------------------------------------------
@bp.route("/send", methods=["POST"])
@limiter.limit(public_chat_limit)
@jwt_required(optional=True)
def send():
    user = current_user(optional=True)

    attachment = None
    if request.content_type and request.content_type.startswith("multipart/form-data"):
        data = SendMessageSchema().load(request.form.to_dict())
        upload = request.files.get("file")
        if upload and upload.filename:
            attachment = save_chat_file(upload)
    else:
        data = SendMessageSchema().load(request.get_json(silent=True) or {})

    msg = chat_service.send_message(user, data, attachment=attachment)
    broadcast_new_message(msg)

    return success_response(message_schema.dump(msg), status=201)


@bp.route("/files/<path:filename>", methods=["GET"])
def chat_file(filename):
    return send_from_directory(current_app.config["CHAT_UPLOADS_FOLDER"], filename)


# -----------------------------------------------------------
# AUTHENTICATED READS
# -----------------------------------------------------------
@bp.route("/order/<order_id>", methods=["GET"])
@jwt_required()
def order_messages(order_id):
    user = current_user()

    if is_public_id(order_id):
        admin_required(user)
        msgs = chat_service.messages_for_conversation(order_id, public_only=True)
    else:
        chat_service.ensure_order_access(order_id, user)
        msgs = chat_service.messages_for_order(order_id)

    return success_response({"messages": messages_schema.dump(msgs)})


@bp.route("/conversation/<conversation_id>", methods=["GET"])
@jwt_required()
def conversation_messages(conversation_id):
    user = current_user()
    chat_service.ensure_conversation_access(conversation_id, user)
    msgs = chat_service.messages_for_conversation(conversation_id)
    return success_response({"messages": messages_schema.dump(msgs)})


@bp.route("/conversations", methods=["GET"])
@jwt_required()
def conversations():
    summaries = list_conversations(current_user(), SCOPE_ALL)
    return success_response({"conversations": conversations_schema.dump(summaries)})


@bp.route("/authenticated-conversations", methods=["GET"])
@jwt_required()
def authenticated_conversations():
    summaries = list_conversations(current_user(), SCOPE_AUTHENTICATED)
    return success_response({"conversations": conversations_schema.dump(summaries)})


@bp.route("/public-conversations", methods=["GET"])
@jwt_required()
def public_conversations():
    summaries = list_conversations(current_user(), SCOPE_PUBLIC)
    return success_response({"conversations": conversations_schema.dump(summaries)})


# -----------------------------------------------------------
# READ ACKNOWLEDGEMENTS
# -----------------------------------------------------------
@bp.route("/order/<order_id>/mark-read", methods=["POST", "PATCH"])
@jwt_required()
def mark_order_read(order_id):
    user = current_user()
    chat_service.ensure_order_access(order_id, user)

    updated = chat_service.mark_order_messages_read(order_id, user.id)
    reader = updated[0].receiver_identity if updated else None
    for msg in updated:
        broadcast_message_read(msg, reader)

    return success_response({"updated": len(updated)}, message="Messages marked as read")


@bp.route("/<message_id>/read", methods=["POST", "PATCH"])
@jwt_required()
def mark_read(message_id):
    user = current_user()
    msg = chat_service.get_message_or_404(message_id)

    if msg.receiver != user.id:
        raise ForbiddenError("Not authorized to mark this message as read")

    was_read = msg.is_read
    chat_service.mark_message_read(msg, msg.receiver_identity)
    if not was_read:
        broadcast_message_read(msg, msg.receiver_identity)

    return success_response({"chat": message_schema.dump(msg)}, message="Message marked as read")


# -----------------------------------------------------------
# ADMIN
# -----------------------------------------------------------
@bp.route("", methods=["GET"])
@jwt_required()
def list_messages():
    admin_required(current_user())

    page, limit = page_params(request.args, default_limit=50, max_limit=200)
    items, pagination = paginate_query(chat_service.all_messages_query(), page, limit)

    return success_response({
        "messages": admin_messages_schema.dump(items),
        "pagination": pagination,
    })


@bp.route("/search", methods=["GET"])
@jwt_required()
def search():
    admin_required(current_user())
    msgs = chat_service.search_messages(request.args.get("query"))
    return success_response({"messages": admin_messages_schema.dump(msgs)})


@bp.route("/<message_id>", methods=["GET"])
@jwt_required()
def get_message(message_id):
    admin_required(current_user())
    msg = chat_service.get_message_or_404(message_id)
    return success_response({"chat": admin_messages_schema.dump([msg])[0]})


@bp.route("/<message_id>", methods=["PUT"])
@jwt_required()
def update_message(message_id):
    admin_required(current_user())
    msg = chat_service.get_message_or_404(message_id)

    changes = UpdateMessageSchema().load(request.get_json(silent=True) or {})
    chat_service.update_message(msg, changes)

    return success_response({"chat": admin_messages_schema.dump([msg])[0]})


@bp.route("/<message_id>", methods=["DELETE"])
@jwt_required()
def delete_message(message_id):
    admin_required(current_user())
    msg = chat_service.get_message_or_404(message_id)
    chat_service.delete_message(msg)
    return success_response({"deleted": True}, message="Message deleted")
