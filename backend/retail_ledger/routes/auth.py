# Overview: Flask API routes for login, logout and the current user.

from flask import Blueprint, g, jsonify, request

from ..decorators import require_auth
from ..models import AuditAction
from ..services import auth_service, session_service
from ..services.registry import get_services
from ..validation import require_payload
from ..time_utils import to_utc_z


auth_bp = Blueprint("auth", __name__, url_prefix="/api/auth")


@auth_bp.post("/login")
def login_route():
    """
    Authenticate with email + password and create a session token.

    The token goes in the Authorization header as "Bearer <token>".
    """
    data = require_payload(request.get_json(silent=True))
    email = data.get("email")
    password = data.get("password")

    if not email or not password:
        return jsonify({"error": "VALIDATION_ERROR", "message": "email and password required"}), 400

    user = auth_service.authenticate(email, password)
    if not user:
        return jsonify({"error": "UNAUTHORIZED", "message": "Invalid credentials"}), 401

    session, token = session_service.create_session(user)

    get_services().audit.record(
        user.id,
        AuditAction.LOGIN,
        f"User {user.email} logged in",
        resource_type="User",
        resource_id=user.id,
        business_id=user.business_id,
        outlet_id=user.outlet_id,
    )

    return jsonify({
        "token": token,
        "expires_at": to_utc_z(session.expires_at),
        "user": user.to_dict(),
    }), 200


@auth_bp.post("/logout")
@require_auth
def logout_route():
    session_service.revoke_session(g.session_token)

    get_services().audit.record(
        g.actor.user_id,
        AuditAction.LOGOUT,
        f"User {g.current_user.email} logged out",
        resource_type="User",
        resource_id=g.actor.user_id,
        business_id=g.actor.business_id,
        outlet_id=g.actor.outlet_id,
    )
    return jsonify({"message": "Logged out successfully"}), 200


@auth_bp.get("/me")
@require_auth
def me_route():
    return jsonify({"user": g.current_user.to_dict(), "actor": g.actor.to_dict()}), 200
