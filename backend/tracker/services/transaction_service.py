# Overview: Take/return transaction CRUD, listing filters and deletion.

"""
Transaction Service

Workers submit take and return requests; they may edit or delete them while
they are pending. Admins see everything, can act on anyone's behalf and can
hard-delete with the configured delete password.

REFERENCE NUMBERS: a take gets one consecutive block of unused reference
numbers, written to the reference_numbers index in the same commit as the
transaction. A unique-constraint collision with a concurrent submission
rolls back and retries with a fresh block.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta

from flask import current_app

from ..extensions import db
from ..models import (
    Transaction,
    ReferenceNumber,
    TRANSACTION_TYPES,
    TRANSACTION_TYPE_TAKE,
    APPROVAL_STATUSES,
    STATUS_PENDING,
    STATUS_APPROVED,
)
from ..validation import (
    ValidationError,
    ConflictError,
    NotFoundError,
    AccessDeniedError,
    MaterialLine,
    clean_material_list,
    coerce_int,
    validate_date,
    validate_time,
)
from . import return_service, notification_service
from .auth_service import check_shared_password
from .concurrency import run_with_unique_retry
from .reference_service import allocate_reference_numbers
from .return_ledger import material_return_state
from .session_service import Identity
from ..time_utils import format_stamp, parse_iso_datetime, today_str, now_time_str, utcnow


DATE_RANGES = ("all", "week", "month", "year")
MATERIAL_RETURN_FILTERS = ("all", "returned", "partially_returned", "not_returned")


# =============================================================================
# HELPERS
# =============================================================================

def _resolve_worker(identity: Identity, worker_name: str | None, worker_id: str | None) -> tuple[str, str]:
    """Workers file under their own identity; admins must name the worker."""
    if not identity.is_admin:
        return identity.name, identity.worker_id

    if not (worker_name or "").strip() or not (worker_id or "").strip():
        raise ValidationError("Please fill in worker name and ID")
    return worker_name.strip(), worker_id.strip()


def _resolve_when(transaction_date: str | None, transaction_time: str | None) -> tuple[str, str]:
    date = validate_date(transaction_date) if transaction_date else today_str()
    time = validate_time(transaction_time) if transaction_time else now_time_str()
    return date, time


def _return_owner(identity: Identity) -> str | None:
    """Workers may only cite their own approved takes; admins any."""
    return None if identity.is_admin else identity.worker_id


def _take_documents(lines: list[MaterialLine], numbers: list[str], stamp: str) -> list[dict]:
    return [
        MaterialLine(
            name=line.name,
            quantity=line.quantity,
            unit=line.unit,
            reference_number=number,
            taken_date=stamp,
        ).to_dict()
        for line, number in zip(lines, numbers)
    ]


def get_transaction(transaction_id: str) -> Transaction:
    transaction = db.session.get(Transaction, transaction_id)
    if not transaction:
        raise NotFoundError(f"Transaction {transaction_id} not found")
    return transaction


def get_visible_transaction(identity: Identity, transaction_id: str) -> Transaction:
    transaction = get_transaction(transaction_id)
    if not identity.is_admin and not identity.owns(transaction):
        raise AccessDeniedError("You can only view your own requests")
    return transaction


# =============================================================================
# CREATION
# =============================================================================

def create_take(
    identity: Identity,
    materials,
    *,
    worker_name: str | None = None,
    worker_id: str | None = None,
    transaction_date: str | None = None,
    transaction_time: str | None = None,
    notes: str | None = None,
) -> Transaction:
    """Validate, number and insert a pending take request."""
    name, wid = _resolve_worker(identity, worker_name, worker_id)
    lines = clean_material_list(materials)
    date, time = _resolve_when(transaction_date, transaction_time)

    def _insert():
        numbers = allocate_reference_numbers(len(lines))
        transaction = Transaction(
            worker_name=name,
            worker_id=wid,
            transaction_type=TRANSACTION_TYPE_TAKE,
            transaction_date=date,
            transaction_time=time,
            materials=_take_documents(lines, numbers, format_stamp()),
            notes=(notes or "").strip() or None,
            approval_status=STATUS_PENDING,
        )
        transaction.reference_rows = [
            ReferenceNumber(reference_number=number, line_index=index)
            for index, number in enumerate(numbers)
        ]
        db.session.add(transaction)
        db.session.commit()
        return transaction

    transaction = run_with_unique_retry(_insert)

    current_app.logger.info(
        "Take %s submitted by %s (%s) with references %s",
        transaction.id,
        name,
        wid,
        ", ".join(m["reference_number"] for m in transaction.materials),
    )
    notification_service.notify_new_request(transaction)
    return transaction


def create_return(
    identity: Identity,
    materials,
    *,
    worker_name: str | None = None,
    worker_id: str | None = None,
    transaction_date: str | None = None,
    transaction_time: str | None = None,
    notes: str | None = None,
) -> Transaction:
    name, wid = _resolve_worker(identity, worker_name, worker_id)
    date, time = _resolve_when(transaction_date, transaction_time)

    transaction = return_service.submit_return(
        worker_name=name,
        worker_id=wid,
        materials=materials,
        transaction_date=date,
        transaction_time=time,
        notes=(notes or "").strip() or None,
        owner_worker_id=_return_owner(identity),
    )
    notification_service.notify_new_request(transaction)
    return transaction


# =============================================================================
# LISTING
# =============================================================================

@dataclass
class TransactionFilters:
    transaction_type: str = "all"
    status: str = "all"
    worker_id: str | None = None
    search: str | None = None
    date_range: str = "all"
    start_date: str | None = None
    end_date: str | None = None
    material_return: str = "all"
    since: datetime | None = None

    @classmethod
    def from_args(cls, args) -> "TransactionFilters":
        """Build from request query args, rejecting unknown enum values."""
        filters = cls(
            transaction_type=args.get("type") or args.get("transaction_type") or "all",
            status=args.get("status") or "all",
            worker_id=args.get("worker_id") or None,
            search=args.get("search") or None,
            date_range=args.get("date_range") or "all",
            start_date=args.get("start_date") or None,
            end_date=args.get("end_date") or None,
            material_return=args.get("material_return") or "all",
        )

        if filters.transaction_type not in ("all",) + TRANSACTION_TYPES:
            raise ValidationError(f"Invalid type filter: {filters.transaction_type}")
        if filters.status not in ("all",) + APPROVAL_STATUSES:
            raise ValidationError(f"Invalid status filter: {filters.status}")
        if filters.date_range not in DATE_RANGES:
            raise ValidationError(f"Invalid date_range filter: {filters.date_range}")
        if filters.material_return not in MATERIAL_RETURN_FILTERS:
            raise ValidationError(f"Invalid material_return filter: {filters.material_return}")
        if filters.start_date:
            validate_date(filters.start_date, "start_date")
        if filters.end_date:
            validate_date(filters.end_date, "end_date")

        since = args.get("since")
        if since:
            try:
                filters.since = parse_iso_datetime(since)
            except ValueError:
                raise ValidationError("since must be an ISO-8601 datetime")
        return filters


def _matches_search(transaction: Transaction, term: str) -> bool:
    if term.startswith("/"):
        # "/name" searches by approver
        approver = term[1:].strip().lower()
        return approver in (transaction.approved_by or "").lower()

    needle = term.lower()
    if needle in (transaction.worker_name or "").lower():
        return True
    if needle in (transaction.worker_id or "").lower():
        return True
    for material in transaction.materials or []:
        if needle in (material.get("name") or "").lower():
            return True
        if term in (material.get("reference_number") or ""):
            return True
    return False


def _matches_date_range(transaction_date: str, date_range: str) -> bool:
    if date_range == "all" or not transaction_date:
        return True
    today = utcnow().date()
    if date_range == "week":
        return transaction_date >= (today - timedelta(days=7)).isoformat()
    if date_range == "month":
        return transaction_date[:7] == today.isoformat()[:7]
    return transaction_date[:4] == today.isoformat()[:4]


def list_transactions(identity: Identity, filters: TransactionFilters | None = None, limit: int | None = None) -> list[Transaction]:
    """
    Newest first, capped at MAX_ROWS.

    Column filters go to SQL; search and material-return state are applied
    to the decoded material documents.
    """
    filters = filters or TransactionFilters()
    cap = limit or current_app.config.get("MAX_ROWS", 1000)

    query = db.session.query(Transaction)

    if not identity.is_admin:
        query = query.filter(
            Transaction.worker_id == identity.worker_id,
            Transaction.worker_name == identity.name,
        )

    if filters.transaction_type != "all":
        query = query.filter(Transaction.transaction_type == filters.transaction_type)
    if filters.status != "all":
        query = query.filter(Transaction.approval_status == filters.status)
    if filters.worker_id:
        query = query.filter(Transaction.worker_id.ilike(f"%{filters.worker_id}%"))
    if filters.start_date:
        query = query.filter(Transaction.transaction_date >= filters.start_date)
    if filters.end_date:
        query = query.filter(Transaction.transaction_date <= filters.end_date)
    if filters.since:
        query = query.filter(Transaction.created_at > filters.since)

    rows = query.order_by(Transaction.created_at.desc()).all()

    results = []
    for transaction in rows:
        if filters.search and not _matches_search(transaction, filters.search):
            continue
        if not _matches_date_range(transaction.transaction_date, filters.date_range):
            continue
        if filters.material_return != "all":
            state = material_return_state(transaction.to_dict())
            if state != filters.material_return:
                continue
        results.append(transaction)
        if len(results) >= cap:
            break

    return results


def pending_count() -> int:
    return db.session.query(Transaction).filter_by(approval_status=STATUS_PENDING).count()


# =============================================================================
# EDITING
# =============================================================================

def _renumber_take(transaction: Transaction, materials) -> list[dict]:
    """
    Apply an edited material list to a pending take.

    A line that still cites one of this take's reference numbers keeps it
    (and its taken_date); every other line gets a freshly allocated number.
    Index rows for dropped lines are removed with the relationship.
    """
    lines = clean_material_list(materials)
    existing = {row.reference_number: row for row in transaction.reference_rows}
    old_docs = {m.get("reference_number"): m for m in transaction.materials or []}

    claimed = set()
    keeps = []
    for line in lines:
        number = line.reference_number
        if number in existing and number not in claimed:
            claimed.add(number)
            keeps.append(number)
        else:
            keeps.append(None)

    fresh_count = keeps.count(None)
    fresh_numbers = iter(allocate_reference_numbers(fresh_count) if fresh_count else [])
    stamp = format_stamp()

    documents, rows = [], []
    for index, (line, number) in enumerate(zip(lines, keeps)):
        if number is not None:
            row = existing[number]
            row.line_index = index
            taken_date = old_docs.get(number, {}).get("taken_date") or stamp
        else:
            number = next(fresh_numbers)
            row = ReferenceNumber(reference_number=number, line_index=index)
            taken_date = stamp
        documents.append(MaterialLine(
            name=line.name,
            quantity=line.quantity,
            unit=line.unit,
            reference_number=number,
            taken_date=taken_date,
        ).to_dict())
        rows.append(row)

    transaction.reference_rows = rows
    return documents


def update_pending(identity: Identity, transaction_id: str, changes: dict) -> Transaction:
    """
    Edit date, time, notes or materials of a pending transaction.

    `version_id` in `changes`, when given, must match the stored version;
    otherwise someone else changed the row since the caller loaded it.
    """
    transaction = get_transaction(transaction_id)

    if not identity.is_admin and not identity.owns(transaction):
        raise AccessDeniedError("You can only edit your own requests")
    if not transaction.is_pending:
        raise ConflictError("Only pending transactions can be edited")

    if changes.get("version_id") is not None:
        expected = coerce_int(changes["version_id"], "version_id")
        if expected != transaction.version_id:
            raise ConflictError("Transaction was modified by someone else. Reload and try again.")

    try:
        if "transaction_date" in changes:
            transaction.transaction_date = validate_date(changes["transaction_date"])
        if "transaction_time" in changes:
            transaction.transaction_time = validate_time(changes["transaction_time"])
        if "notes" in changes:
            transaction.notes = (changes["notes"] or "").strip() or None

        if identity.is_admin:
            if "worker_name" in changes or "worker_id" in changes:
                name, wid = _resolve_worker(
                    identity,
                    changes.get("worker_name", transaction.worker_name),
                    changes.get("worker_id", transaction.worker_id),
                )
                transaction.worker_name, transaction.worker_id = name, wid

        if "materials" in changes:
            if transaction.is_take:
                transaction.materials = _renumber_take(transaction, changes["materials"])
            else:
                transaction.materials = return_service.validate_return_materials(
                    changes["materials"],
                    owner_worker_id=_return_owner(identity),
                )

        db.session.commit()
    except Exception:
        db.session.rollback()
        raise

    current_app.logger.info("Transaction %s edited by %s", transaction.id, identity.name)
    return transaction


# =============================================================================
# DELETION
# =============================================================================

def delete_transaction(identity: Identity, transaction_id: str, password: str | None = None) -> None:
    """
    Hard delete.

    Workers: own pending requests only. Admins: anything, with the delete
    password. Deleting an approved return recounts the take lines it had
    been credited to; an approved take with approved returns against it
    cannot be deleted until those returns are declined or deleted.
    """
    transaction = get_transaction(transaction_id)

    if identity.is_admin:
        if not check_shared_password(password, "DELETE_PASSWORD"):
            raise AccessDeniedError("Incorrect password")
    else:
        if not identity.owns(transaction):
            raise AccessDeniedError("You can only delete your own requests")
        if not transaction.is_pending:
            raise ConflictError("Only pending requests can be deleted")

    if transaction.is_take and transaction.approval_status == STATUS_APPROVED:
        blocking = return_service.approved_returns_against(transaction)
        if blocking:
            raise ConflictError(
                "Cannot delete this take: approved returns exist against it "
                f"({', '.join(blocking)}). Decline or delete those returns first."
            )

    try:
        if transaction.is_return and transaction.approval_status == STATUS_APPROVED:
            return_service.resync_after_delete(transaction)
        db.session.delete(transaction)
        db.session.commit()
    except Exception:
        db.session.rollback()
        raise

    current_app.logger.info("Transaction %s deleted by %s", transaction_id, identity.name)


def delete_all_history(identity: Identity, password: str | None) -> int:
    if not identity.is_admin:
        raise AccessDeniedError("Admin access required")
    if not check_shared_password(password, "HISTORY_PASSWORD"):
        raise AccessDeniedError("Incorrect password")

    try:
        db.session.query(ReferenceNumber).delete(synchronize_session=False)
        count = db.session.query(Transaction).delete(synchronize_session=False)
        db.session.commit()
    except Exception:
        db.session.rollback()
        raise

    current_app.logger.warning("All transaction history (%d rows) deleted by %s", count, identity.name)
    return count
