from __future__ import annotations

import uuid

from ..extensions import db
from ..time_utils import format_stamp, to_utc_z, utcnow


TRANSACTION_TYPE_TAKE = "take"
TRANSACTION_TYPE_RETURN = "return"
TRANSACTION_TYPES = (TRANSACTION_TYPE_TAKE, TRANSACTION_TYPE_RETURN)

STATUS_PENDING = "pending"
STATUS_APPROVED = "approved"
STATUS_DECLINED = "declined"
APPROVAL_STATUSES = (STATUS_PENDING, STATUS_APPROVED, STATUS_DECLINED)


def _new_id() -> str:
    return str(uuid.uuid4())


class Transaction(db.Model):
    """
    A single take or return request.

    LIFECYCLE:
    1. pending: submitted by a worker, editable/deletable by the worker
    2. approved / declined: decided by an admin (re-review flips between the two)

    The material lines are stored as one JSON document (see
    tracker.validation.MaterialLine). For take lines the returned_* fields
    are a cache of the return ledger; the ledger itself is the set of
    approved return transactions.

    CONCURRENCY: version_id makes every UPDATE conditional on the version
    that was read, so two admins deciding returns against the same take row
    cannot silently overwrite each other (StaleDataError instead).
    """
    __tablename__ = "transactions"
    __table_args__ = (
        db.Index("ix_transactions_type_status", "transaction_type", "approval_status"),
        db.Index("ix_transactions_worker", "worker_id", "worker_name"),
    )

    id = db.Column(db.String(36), primary_key=True, default=_new_id)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow, index=True)
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow)

    worker_name = db.Column(db.String(120), nullable=False)
    worker_id = db.Column(db.String(64), nullable=False)

    transaction_type = db.Column(db.String(16), nullable=False)  # take | return
    transaction_date = db.Column(db.String(10), nullable=False, index=True)  # YYYY-MM-DD
    transaction_time = db.Column(db.String(5), nullable=False)  # HH:MM

    materials = db.Column(db.JSON, nullable=False, default=list)
    notes = db.Column(db.Text, nullable=True)

    approval_status = db.Column(db.String(16), nullable=False, default=STATUS_PENDING)
    approved_by = db.Column(db.String(120), nullable=True)
    approval_date = db.Column(db.DateTime(timezone=True), nullable=True)

    version_id = db.Column(db.Integer, nullable=False, default=1)

    __mapper_args__ = {"version_id_col": version_id}

    @property
    def is_take(self) -> bool:
        return self.transaction_type == TRANSACTION_TYPE_TAKE

    @property
    def is_return(self) -> bool:
        return self.transaction_type == TRANSACTION_TYPE_RETURN

    @property
    def is_pending(self) -> bool:
        return self.approval_status == STATUS_PENDING

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
            "worker_name": self.worker_name,
            "worker_id": self.worker_id,
            "transaction_type": self.transaction_type,
            "transaction_date": self.transaction_date,
            "transaction_time": self.transaction_time,
            "materials": [dict(m) for m in (self.materials or [])],
            "notes": self.notes,
            "approval_status": self.approval_status,
            "approved_by": self.approved_by,
            "approval_date": format_stamp(self.approval_date) if self.approval_date else None,
            "version_id": self.version_id,
        }

    def __repr__(self) -> str:
        return f"<Transaction {self.id} {self.transaction_type} {self.approval_status}>"


class ReferenceNumber(db.Model):
    """
    Uniqueness index for take-line reference numbers.

    The unique constraint is what makes reference numbers globally unique;
    the allocator checks it before inserting and the take submission retries
    on an IntegrityError if a concurrent submission wins the race.
    """
    __tablename__ = "reference_numbers"
    __table_args__ = (
        db.UniqueConstraint("reference_number", name="uq_reference_numbers_value"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    reference_number = db.Column(db.String(6), nullable=False)
    transaction_id = db.Column(
        db.String(36),
        db.ForeignKey("transactions.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    line_index = db.Column(db.Integer, nullable=False, default=0)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)

    transaction = db.relationship(
        "Transaction",
        backref=db.backref("reference_rows", lazy=True, cascade="all, delete-orphan"),
    )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "reference_number": self.reference_number,
            "transaction_id": self.transaction_id,
            "line_index": self.line_index,
            "created_at": to_utc_z(self.created_at),
        }
