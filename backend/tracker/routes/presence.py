# Overview: Flask API routes for admin online/offline presence.

from flask import Blueprint, jsonify, g

from ..services import presence_service
from ..decorators import require_auth, require_admin, json_error


presence_bp = Blueprint("presence", __name__, url_prefix="/api/admin/presence")


@presence_bp.get("")
def presence_status_route():
    """Public: lets the worker screen show whether an admin is available."""
    try:
        return jsonify({"presence": presence_service.get_status()}), 200
    except Exception as e:
        return json_error(e, "load admin presence")


@presence_bp.post("/heartbeat")
@require_auth
@require_admin
def heartbeat_route():
    try:
        row = presence_service.heartbeat(g.identity.email)
        return jsonify({"presence": row.to_dict()}), 200
    except Exception as e:
        return json_error(e, "record heartbeat")


@presence_bp.post("/offline")
@require_auth
@require_admin
def offline_route():
    try:
        presence_service.go_offline(g.identity.email)
        return jsonify({"presence": presence_service.get_status()}), 200
    except Exception as e:
        return json_error(e, "mark admin offline")
