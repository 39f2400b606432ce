# Overview: Request decorators for API routes.

from functools import wraps

from flask import g, jsonify, request

from .services import session_service


def _bearer_token() -> str | None:
    auth_header = request.headers.get("Authorization")
    if not auth_header or not auth_header.startswith("Bearer "):
        return None
    return auth_header.split(" ", 1)[1].strip() or None


def require_auth(f):
    """
    Require a valid session and establish the request Actor.

    Sets on flask.g:
    - g.current_user: the authenticated User
    - g.actor: the Actor every service call receives
    - g.session_token: the plaintext bearer token (for logout)

    Returns 401 when the header is missing or the token is invalid,
    expired, idle or revoked.
    """
    @wraps(f)
    def decorated_function(*args, **kwargs):
        token = _bearer_token()
        if not token:
            return jsonify({"error": "UNAUTHORIZED", "message": "Authentication required"}), 401

        context = session_service.validate_session(token)
        if not context:
            return jsonify({"error": "UNAUTHORIZED", "message": "Invalid or expired token"}), 401

        g.current_user = context.user
        g.actor = context.actor
        g.session_token = token

        return f(*args, **kwargs)

    return decorated_function
