from flask_jwt_extended import get_jwt_identity

from tesipedia.models.user import User
from tesipedia.utils.exceptions import ForbiddenError, UnauthorizedError


def current_user(optional=False):
    """The account behind the request's JWT.

    Must run inside ``@jwt_required()``; with ``optional=True`` an absent
    token yields ``None`` instead of an error.
    """
    uid = get_jwt_identity()
    if uid is None:
        if optional:
            return None
        raise UnauthorizedError()

    user = User.query.get(uid)
    if not user:
        raise UnauthorizedError("Invalid user")
    return user


def admin_required(user):
    if not user or not user.is_admin:
        raise ForbiddenError("Admin privileges required")
    return user
