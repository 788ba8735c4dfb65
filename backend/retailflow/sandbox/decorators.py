# Overview: Bearer-token check and response envelope helpers for sandbox routes.

from functools import wraps
from flask import current_app, g, jsonify, request


def envelope(data=None, message: str = "Success", status: int = 200, meta: dict | None = None):
    body = {"statusCode": status, "message": message, "data": data}
    if meta is not None:
        body["meta"] = meta
    return jsonify(body), status


def error(message: str, status: int = 400):
    return jsonify({"statusCode": status, "message": message}), status


def require_auth(f):
    """
    Require the sandbox bearer token.

    Sets g.current_user_id for routes that record who acted (approvals).
    Returns 401 when the header is missing or the token does not match
    SANDBOX_TOKEN.
    """
    @wraps(f)
    def decorated_function(*args, **kwargs):
        auth_header = request.headers.get("Authorization")

        if not auth_header or not auth_header.startswith("Bearer "):
            return error("Authentication required", 401)

        token = auth_header.split(" ", 1)[1]
        if token != current_app.config["SANDBOX_TOKEN"]:
            return error("Invalid or expired token", 401)

        g.current_user_id = 1
        return f(*args, **kwargs)

    return decorated_function
