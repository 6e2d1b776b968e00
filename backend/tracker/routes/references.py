# Overview: Flask API routes for reference-number lookup and return history.

from flask import Blueprint, jsonify, g

from ..services import return_service
from ..validation import validate_reference_number
from ..decorators import require_auth, json_error


references_bp = Blueprint("references", __name__, url_prefix="/api/references")


@references_bp.get("/<reference_number>")
@require_auth
def lookup_reference_route(reference_number: str):
    """
    Auto-fill for a return form: material, unit, taken quantity, how much is
    already returned and how much remains.

    Workers and requesters only find references from their own approved takes.
    """
    try:
        ref = validate_reference_number(reference_number)
        worker_id = None if g.identity.is_admin else g.identity.worker_id
        availability = return_service.lookup_reference(ref, worker_id=worker_id)
        return jsonify({"reference": availability.to_dict()}), 200
    except Exception as e:
        return json_error(e, "look up reference number")


@references_bp.get("/<reference_number>/history")
@require_auth
def reference_history_route(reference_number: str):
    try:
        ref = validate_reference_number(reference_number)
        return jsonify(return_service.reference_history(ref)), 200
    except Exception as e:
        return json_error(e, "load return history")
