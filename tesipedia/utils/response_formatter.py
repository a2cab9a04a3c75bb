from flask import jsonify


def success_response(payload=None, message=None, status=200):
    resp = {"success": True}
    if payload is not None:
        resp.update(payload if isinstance(payload, dict) else {"data": payload})
    if message:
        resp["message"] = message
    return jsonify(resp), status


def error_body(code, message, details=None):
    """The ``error`` object shared by HTTP responses and socket ``error`` events."""
    return {"code": code, "message": message, "details": details or {}}


def error_response(code, message, details=None, status=400, stack=None):
    err = {
        "success": False,
        "message": message,
        "error": error_body(code, message, details),
    }
    if stack:
        err["stack"] = stack
    return jsonify(err), status
