# Overview: Flask API routes for login, logout and the current identity.

# backend/tracker/routes/auth.py
"""
Authentication API routes

Three login flavours, one session model:
- admin: email + shared admin password + display name
- requester: registered requester ID + password
- worker: ad-hoc name + worker ID (no password)

Each returns a bearer token; every other endpoint reads the caller's
identity from that token.
"""

from flask import Blueprint, request, jsonify, g, current_app

from ..services import auth_service, session_service, presence_service
from ..decorators import require_auth, json_error


auth_bp = Blueprint("auth", __name__, url_prefix="/api/auth")


def _login_response(identity):
    session, token = session_service.create_session(identity)
    return jsonify({
        "token": token,
        "expires_at": session.to_dict()["expires_at"],
        "identity": identity.to_dict(),
    }), 200


@auth_bp.post("/admin/login")
def admin_login_route():
    try:
        data = request.get_json(silent=True) or {}
        identity = auth_service.authenticate_admin(
            data.get("email"),
            data.get("password"),
            name=data.get("name"),
        )
        presence_service.heartbeat(identity.email)
        current_app.logger.info("Admin %s logged in", identity.email)
        return _login_response(identity)
    except Exception as e:
        return json_error(e, "log in admin")


@auth_bp.post("/requester/login")
def requester_login_route():
    try:
        data = request.get_json(silent=True) or {}
        identity = auth_service.authenticate_requester(
            data.get("requester_id"),
            data.get("password"),
        )
        return _login_response(identity)
    except Exception as e:
        return json_error(e, "log in requester")


@auth_bp.post("/worker/login")
def worker_login_route():
    try:
        data = request.get_json(silent=True) or {}
        identity = auth_service.worker_identity(
            data.get("worker_name"),
            data.get("worker_id"),
        )
        return _login_response(identity)
    except Exception as e:
        return json_error(e, "log in worker")


@auth_bp.post("/logout")
@require_auth
def logout_route():
    try:
        session_service.revoke_session(g.token)
        if g.identity.is_admin:
            presence_service.go_offline(g.identity.email)
        return jsonify({"message": "Logged out"}), 200
    except Exception as e:
        return json_error(e, "log out")


@auth_bp.get("/me")
@require_auth
def me_route():
    return jsonify({"identity": g.identity.to_dict()}), 200
