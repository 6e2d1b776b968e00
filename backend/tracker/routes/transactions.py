# Overview: Flask API routes for take/return transactions; parses input and returns JSON responses.

# backend/tracker/routes/transactions.py
"""
Transaction API Routes

DESIGN:
- POST / creates a take or a return (transaction_type in the body)
- Workers and requesters see, edit and delete only their own pending rows
- Admins approve/decline, delete with the delete password, export and print

Every handler maps service exceptions through json_error:
400 validation, 403 access, 404 missing, 409 state conflict.
"""

from flask import Blueprint, request, jsonify, g, send_file, Response

from ..models import TRANSACTION_TYPE_TAKE, TRANSACTION_TYPE_RETURN
from ..services import transaction_service, approval_service, report_service
from ..services.transaction_service import TransactionFilters
from ..validation import ValidationError
from ..decorators import require_auth, require_admin, json_error


transactions_bp = Blueprint("transactions", __name__, url_prefix="/api/transactions")


# =============================================================================
# LISTING & CREATION
# =============================================================================

@transactions_bp.get("")
@require_auth
def list_transactions_route():
    """
    List transactions visible to the caller, newest first.

    Query params: type, status, worker_id, search, date_range, start_date,
    end_date, material_return, since (ISO timestamp).
    """
    try:
        filters = TransactionFilters.from_args(request.args)
        rows = transaction_service.list_transactions(g.identity, filters)
        return jsonify({
            "transactions": [t.to_dict() for t in rows],
            "count": len(rows),
        }), 200
    except Exception as e:
        return json_error(e, "load transactions")


@transactions_bp.post("")
@require_auth
def create_transaction_route():
    """
    Submit a take or return request (status: pending).

    Request body:
    {
        "transaction_type": "take" | "return",
        "materials": [{"name": "Cable", "quantity": 5, "unit": "m"}],
        "transaction_date": "2024-03-01",   (optional, default today)
        "transaction_time": "09:30",        (optional, default now)
        "notes": "...",                     (optional)
        "worker_name": "...", "worker_id": "..."   (admin only)
    }

    Return lines carry reference_number and return_quantity instead.
    """
    try:
        data = request.get_json(silent=True) or {}
        transaction_type = data.get("transaction_type")

        kwargs = dict(
            worker_name=data.get("worker_name"),
            worker_id=data.get("worker_id"),
            transaction_date=data.get("transaction_date"),
            transaction_time=data.get("transaction_time"),
            notes=data.get("notes"),
        )

        if transaction_type == TRANSACTION_TYPE_TAKE:
            transaction = transaction_service.create_take(g.identity, data.get("materials"), **kwargs)
        elif transaction_type == TRANSACTION_TYPE_RETURN:
            transaction = transaction_service.create_return(g.identity, data.get("materials"), **kwargs)
        else:
            raise ValidationError("transaction_type must be 'take' or 'return'")

        return jsonify({"transaction": transaction.to_dict()}), 201
    except Exception as e:
        return json_error(e, "submit request")


@transactions_bp.get("/pending-count")
@require_auth
@require_admin
def pending_count_route():
    try:
        return jsonify({"pending": transaction_service.pending_count()}), 200
    except Exception as e:
        return json_error(e, "count pending requests")


@transactions_bp.delete("")
@require_auth
@require_admin
def delete_all_route():
    """Wipe all history. Body: {"password": "..."} (history password)."""
    try:
        data = request.get_json(silent=True) or {}
        count = transaction_service.delete_all_history(g.identity, data.get("password"))
        return jsonify({"deleted": count}), 200
    except Exception as e:
        return json_error(e, "delete history")


# =============================================================================
# EXPORT & RECEIPTS
# =============================================================================

@transactions_bp.get("/export")
@require_auth
@require_admin
def export_route():
    """Excel workbook of the filtered list (same query params as listing)."""
    try:
        filters = TransactionFilters.from_args(request.args)
        rows = transaction_service.list_transactions(g.identity, filters)
        buffer = report_service.export_workbook(rows)
        return send_file(
            buffer,
            mimetype="application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
            as_attachment=True,
            download_name=report_service.export_filename(),
        )
    except Exception as e:
        return json_error(e, "export transactions")


@transactions_bp.get("/receipts")
@require_auth
@require_admin
def bulk_receipts_route():
    """
    Printable receipts, oldest first. Query params: start_date, end_date,
    worker_id. The window is applied in the query, before the row cap.
    """
    try:
        window = {
            "start_date": request.args.get("start_date"),
            "end_date": request.args.get("end_date"),
            "worker_id": request.args.get("worker_id"),
        }
        filters = TransactionFilters.from_args(window)
        rows = transaction_service.list_transactions(g.identity, filters)
        selected = report_service.select_for_bulk_print(list(reversed(rows)), **window)
        html = report_service.render_bulk_receipts(selected)
        return Response(html, mimetype="text/html")
    except Exception as e:
        return json_error(e, "print receipts")


@transactions_bp.get("/<transaction_id>/receipt")
@require_auth
@require_admin
def receipt_route(transaction_id: str):
    try:
        transaction = transaction_service.get_transaction(transaction_id)
        html = report_service.render_receipt(transaction)
        response = Response(html, mimetype="text/html")
        response.headers["X-Receipt-Title"] = report_service.receipt_filename(transaction)
        return response
    except Exception as e:
        return json_error(e, "print receipt")


# =============================================================================
# SINGLE TRANSACTION
# =============================================================================

@transactions_bp.get("/<transaction_id>")
@require_auth
def get_transaction_route(transaction_id: str):
    try:
        transaction = transaction_service.get_visible_transaction(g.identity, transaction_id)
        return jsonify({"transaction": transaction.to_dict()}), 200
    except Exception as e:
        return json_error(e, "load transaction")


@transactions_bp.patch("/<transaction_id>")
@require_auth
def update_transaction_route(transaction_id: str):
    """
    Edit a pending transaction.

    Body may include transaction_date, transaction_time, notes, materials
    and version_id (the version the client last saw).
    """
    try:
        data = request.get_json(silent=True) or {}
        transaction = transaction_service.update_pending(g.identity, transaction_id, data)
        return jsonify({"transaction": transaction.to_dict()}), 200
    except Exception as e:
        return json_error(e, "update transaction")


@transactions_bp.delete("/<transaction_id>")
@require_auth
def delete_transaction_route(transaction_id: str):
    """Admins must send {"password": "..."} (delete password)."""
    try:
        data = request.get_json(silent=True) or {}
        transaction_service.delete_transaction(g.identity, transaction_id, data.get("password"))
        return jsonify({"deleted": transaction_id}), 200
    except Exception as e:
        return json_error(e, "delete transaction")


# =============================================================================
# APPROVAL WORKFLOW
# =============================================================================

@transactions_bp.post("/<transaction_id>/approve")
@require_auth
@require_admin
def approve_route(transaction_id: str):
    try:
        transaction = approval_service.approve(g.identity, transaction_id)
        return jsonify({"transaction": transaction.to_dict()}), 200
    except Exception as e:
        return json_error(e, "approve transaction")


@transactions_bp.post("/<transaction_id>/decline")
@require_auth
@require_admin
def decline_route(transaction_id: str):
    try:
        transaction = approval_service.decline(g.identity, transaction_id)
        return jsonify({"transaction": transaction.to_dict()}), 200
    except Exception as e:
        return json_error(e, "decline transaction")
