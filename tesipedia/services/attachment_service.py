import logging
import os
import uuid

from flask import current_app
from werkzeug.utils import secure_filename

logger = logging.getLogger(__name__)

FILES_URL_PREFIX = "/api/v1/chat/files/"


def save_chat_file(file):
    """Store an uploaded chat file and return the ``{url, fileName}`` pair."""
    root_dir = current_app.config.get("CHAT_UPLOADS_FOLDER", "uploads/chat")
    os.makedirs(root_dir, exist_ok=True)

    filename = f"{uuid.uuid4().hex}_{secure_filename(file.filename)}"
    file.save(os.path.join(root_dir, filename))

    return {"url": f"{FILES_URL_PREFIX}{filename}", "fileName": file.filename}


def delete_chat_file(url):
    """Remove a locally stored attachment. Foreign URLs are left alone."""
    if not url or not url.startswith(FILES_URL_PREFIX):
        return False

    filename = secure_filename(url[len(FILES_URL_PREFIX):])
    path = os.path.join(current_app.config.get("CHAT_UPLOADS_FOLDER", "uploads/chat"), filename)
    try:
        os.remove(path)
    except FileNotFoundError:
        logger.warning("Attachment %s already gone", path)
        return False
    return True
