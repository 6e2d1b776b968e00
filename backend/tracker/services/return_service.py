# Overview: Data-access shim around the return ledger rules.

"""
Return Processing Service

Reads the approved take/return ledgers, runs the pure rules in
return_ledger, and writes the results back to the take rows.

LIFECYCLE:
1. submit_return: validated against the ledger, inserted as pending.
   Take lines are NOT touched; their returned_quantity only ever reflects
   approved returns.
2. apply_return_decision: after an admin approves or declines, every take
   line the return references is recomputed from the ledger and rewritten.

The caller owns the commit, so a decision and all of the take rows it
touches land in one database transaction.
"""

from __future__ import annotations

from flask import current_app

from ..extensions import db
from ..models import (
    Transaction,
    TRANSACTION_TYPE_TAKE,
    TRANSACTION_TYPE_RETURN,
    STATUS_PENDING,
    STATUS_APPROVED,
)
from ..validation import ConflictError, clean_material_list
from . import return_ledger
from .return_ledger import Availability
from ..time_utils import format_stamp


def ledger_view(transaction: Transaction) -> dict:
    """to_dict() with created_at kept as a datetime for ordering."""
    data = transaction.to_dict()
    data["created_at"] = transaction.created_at
    return data


# =============================================================================
# LEDGER READS
# =============================================================================

def fetch_approved_takes(worker_id: str | None = None) -> list[dict]:
    query = db.session.query(Transaction).filter_by(
        transaction_type=TRANSACTION_TYPE_TAKE,
        approval_status=STATUS_APPROVED,
    )
    if worker_id is not None:
        query = query.filter(Transaction.worker_id == worker_id)
    return [ledger_view(t) for t in query.order_by(Transaction.created_at.asc()).all()]


def fetch_approved_returns(exclude_id: str | None = None) -> list[dict]:
    query = db.session.query(Transaction).filter_by(
        transaction_type=TRANSACTION_TYPE_RETURN,
        approval_status=STATUS_APPROVED,
    )
    if exclude_id is not None:
        query = query.filter(Transaction.id != exclude_id)
    return [ledger_view(t) for t in query.order_by(Transaction.created_at.asc()).all()]


def lookup_reference(reference_number: str, worker_id: str | None = None) -> Availability:
    """
    Auto-fill data for a reference number typed into a return form.

    With worker_id the take ledger is narrowed to that worker's own takes.
    Raises ReferenceNotFoundError.
    """
    takes = fetch_approved_takes(worker_id=worker_id)
    return return_ledger.available_to_return(reference_number, takes, fetch_approved_returns())


def reference_history(reference_number: str) -> dict:
    take, line = return_ledger.find_take_line(reference_number, fetch_approved_takes())
    history = return_ledger.return_history(reference_number, fetch_approved_returns())
    quantity = int(line.get("quantity") or 0)
    return {
        "reference_number": reference_number,
        "transaction_id": take["id"],
        "material": line.get("name"),
        "unit": line.get("unit"),
        "quantity": quantity,
        "history": history,
        **return_ledger.summarize_history(quantity, history),
    }


def approved_returns_against(take: Transaction) -> list[str]:
    """IDs of approved returns citing any of this take's reference numbers."""
    refs = {m.get("reference_number") for m in take.materials or [] if m.get("reference_number")}
    if not refs:
        return []
    return [
        ret["id"]
        for ret in fetch_approved_returns()
        if any(line.get("reference_number") in refs for line in ret.get("materials") or [])
    ]


def histories_for(transaction: Transaction, approved_returns: list[dict] | None = None) -> dict[str, list[dict]]:
    """Return timelines for every referenced line of a take (used by receipts)."""
    if not transaction.is_take:
        return {}
    if approved_returns is None:
        approved_returns = fetch_approved_returns()
    result = {}
    for line in transaction.materials or []:
        ref = line.get("reference_number")
        if ref:
            history = return_ledger.return_history(ref, approved_returns)
            if history:
                result[ref] = history
    return result


# =============================================================================
# SUBMISSION
# =============================================================================

def validate_return_materials(materials, owner_worker_id: str | None = None) -> list[dict]:
    """
    Validate a return's material list against the current ledger. No writes.

    With owner_worker_id only that worker's approved takes can be cited, the
    same narrowing the reference lookup applies; an unknown or foreign
    reference number raises ReferenceNotFoundError.
    """
    lines = clean_material_list(materials, is_return=True)
    return return_ledger.validate_return_request(
        lines,
        fetch_approved_takes(worker_id=owner_worker_id),
        fetch_approved_returns(),
    )


def submit_return(
    *,
    worker_name: str,
    worker_id: str,
    materials,
    transaction_date: str,
    transaction_time: str,
    notes: str | None = None,
    owner_worker_id: str | None = None,
) -> Transaction:
    """
    Create a pending return after validating every line.

    Raises ReturnValidationError (or ReferenceNotFoundError) before any
    write if a line would over-return. owner_worker_id restricts the lines
    to that worker's own approved takes.
    """
    cleaned = validate_return_materials(materials, owner_worker_id=owner_worker_id)

    transaction = Transaction(
        worker_name=worker_name,
        worker_id=worker_id,
        transaction_type=TRANSACTION_TYPE_RETURN,
        transaction_date=transaction_date,
        transaction_time=transaction_time,
        materials=cleaned,
        notes=notes,
        approval_status=STATUS_PENDING,
    )
    db.session.add(transaction)
    db.session.commit()

    current_app.logger.info(
        "Return %s submitted by %s (%s): %s",
        transaction.id,
        worker_name,
        worker_id,
        ", ".join(f"#{m['reference_number']} x{m['return_quantity']}" for m in cleaned),
    )
    return transaction


# =============================================================================
# DECISIONS
# =============================================================================

def _referenced_numbers(transaction: Transaction) -> list[str]:
    seen = []
    for line in transaction.materials or []:
        ref = line.get("reference_number")
        if ref and ref not in seen:
            seen.append(ref)
    return seen


def _find_take_row(reference_number: str, take_rows: list[Transaction]) -> tuple[Transaction, dict] | tuple[None, None]:
    for row in take_rows:
        for line in row.materials or []:
            if line.get("reference_number") == reference_number:
                return row, line
    return None, None


def _approved_take_rows() -> list[Transaction]:
    return db.session.query(Transaction).filter_by(
        transaction_type=TRANSACTION_TYPE_TAKE,
        approval_status=STATUS_APPROVED,
    ).order_by(Transaction.created_at.asc()).all()


def apply_return_decision(return_tx: Transaction, approving: bool, actor_name: str) -> list[Transaction]:
    """
    Recompute every take line referenced by `return_tx`.

    approving=True counts this return in the total (and refuses to push a
    line past its taken quantity); approving=False excludes it and marks the
    line as declined. Lines spread over several take transactions are
    grouped so each take row is written once. Does not commit.
    """
    refs = _referenced_numbers(return_tx)
    if not refs:
        return []

    take_rows = _approved_take_rows()
    other_returns = fetch_approved_returns(exclude_id=return_tx.id)
    this_return = ledger_view(return_tx)
    stamp = format_stamp()

    pending_updates: dict[str, tuple[Transaction, list[dict]]] = {}

    for ref in refs:
        row, line = _find_take_row(ref, take_rows)
        if row is None:
            if approving:
                raise ConflictError(f"Reference number {ref} is not part of an approved take")
            current_app.logger.warning(
                "Declined return %s cites reference %s with no approved take; nothing to update",
                return_tx.id,
                ref,
            )
            continue

        _, materials = pending_updates.get(row.id, (row, list(row.materials or [])))

        if approving:
            total = return_ledger.total_approved_returned(ref, other_returns, include=this_return)
            quantity = int(line.get("quantity") or 0)
            if total > quantity:
                raise ConflictError(
                    f"Cannot approve: {total} {line.get('unit') or 'pcs'} of {line.get('name')} "
                    f"would be returned but only {quantity} were taken (reference {ref})"
                )
            materials = return_ledger.apply_approval(materials, ref, total, stamp)
        else:
            total = return_ledger.total_approved_returned(ref, other_returns)
            materials = return_ledger.apply_decline(materials, ref, total, actor_name, stamp)

        pending_updates[row.id] = (row, materials)

    for row, materials in pending_updates.values():
        row.materials = materials

    return [row for row, _ in pending_updates.values()]


def resync_after_delete(return_tx: Transaction) -> list[Transaction]:
    """
    Recount take lines after an approved return is hard-deleted, so the
    cached returned_quantity keeps matching the ledger. Does not commit.
    """
    refs = _referenced_numbers(return_tx)
    if not refs:
        return []

    take_rows = _approved_take_rows()
    other_returns = fetch_approved_returns(exclude_id=return_tx.id)
    touched: dict[str, tuple[Transaction, list[dict]]] = {}

    for ref in refs:
        row, _ = _find_take_row(ref, take_rows)
        if row is None:
            continue
        _, materials = touched.get(row.id, (row, list(row.materials or [])))
        total = return_ledger.total_approved_returned(ref, other_returns)
        touched[row.id] = (row, return_ledger.apply_recount(materials, ref, total))

    for row, materials in touched.values():
        row.materials = materials
    return [row for row, _ in touched.values()]
