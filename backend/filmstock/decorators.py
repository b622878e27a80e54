# Overview: Request decorators for API routes.

import hmac
from functools import wraps

from flask import current_app, jsonify, request


def require_admin(f):
    """
    Require the configured admin bearer token.

    SECURITY: Returns
    - 401 if the Authorization header is missing or not a Bearer token
    - 403 if the token does not match ADMIN_TOKEN, or no ADMIN_TOKEN is set
    """
    @wraps(f)
    def decorated_function(*args, **kwargs):
        auth_header = request.headers.get("Authorization")

        if not auth_header or not auth_header.startswith("Bearer "):
            return jsonify({"error": "Authentication required"}), 401

        token = auth_header.split(" ", 1)[1]
        expected = current_app.config.get("ADMIN_TOKEN") or ""

        if not expected or not hmac.compare_digest(token.encode("utf-8"), expected.encode("utf-8")):
            current_app.logger.warning(
                "Rejected admin request %s %s from %s", request.method, request.path, request.remote_addr,
            )
            return jsonify({"error": "Admin access required"}), 403

        return f(*args, **kwargs)

    return decorated_function
