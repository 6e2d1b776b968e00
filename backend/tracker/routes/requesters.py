# Overview: Flask API routes for the requester registry (admin only).

from flask import Blueprint, request, jsonify

from ..services import auth_service
from ..decorators import require_auth, require_admin, json_error


requesters_bp = Blueprint("requesters", __name__, url_prefix="/api/requesters")


@requesters_bp.get("")
@require_auth
@require_admin
def list_requesters_route():
    try:
        requesters = auth_service.list_requesters()
        return jsonify({
            "requesters": [r.to_dict() for r in requesters],
            "count": len(requesters),
        }), 200
    except Exception as e:
        return json_error(e, "load requesters")


@requesters_bp.post("")
@require_auth
@require_admin
def create_requester_route():
    """
    Request body:
    {
        "requester_id": "W-102",
        "name": "Jane Doe",
        "password": "..."
    }
    """
    try:
        data = request.get_json(silent=True) or {}
        requester = auth_service.create_requester(
            data.get("requester_id"),
            data.get("name"),
            data.get("password"),
        )
        return jsonify({"requester": requester.to_dict()}), 201
    except Exception as e:
        return json_error(e, "create requester")


@requesters_bp.get("/<int:requester_pk>")
@require_auth
@require_admin
def get_requester_route(requester_pk: int):
    try:
        return jsonify({"requester": auth_service.get_requester(requester_pk).to_dict()}), 200
    except Exception as e:
        return json_error(e, "load requester")


@requesters_bp.put("/<int:requester_pk>")
@require_auth
@require_admin
def update_requester_route(requester_pk: int):
    """Blank or missing password keeps the current one."""
    try:
        data = request.get_json(silent=True) or {}
        requester = auth_service.update_requester(
            requester_pk,
            requester_id=data.get("requester_id"),
            name=data.get("name"),
            password=data.get("password"),
        )
        return jsonify({"requester": requester.to_dict()}), 200
    except Exception as e:
        return json_error(e, "update requester")


@requesters_bp.delete("/<int:requester_pk>")
@require_auth
@require_admin
def delete_requester_route(requester_pk: int):
    try:
        auth_service.delete_requester(requester_pk)
        return jsonify({"deleted": requester_pk}), 200
    except Exception as e:
        return json_error(e, "delete requester")
