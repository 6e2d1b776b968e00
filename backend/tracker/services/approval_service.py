# Overview: Admin approve/decline of take and return requests.

"""
Approval Workflow

LIFECYCLE:
    pending -> approved | declined
    approved <-> declined      (re-review by an admin)

Approving or declining a return recomputes the take lines it references in
the same commit. Declining a take that already has approved returns against
it is refused; those returns would be left pointing at nothing.

CONCURRENCY: Transaction rows carry a version_id, so two admins deciding the
same row issue conditional UPDATEs and the loser gets StaleDataError. The
decision is retried from a fresh read; the retry then sees the winner's
status and stops with a ConflictError instead of overwriting it.
"""

from __future__ import annotations

from flask import current_app

from ..extensions import db
from ..models import Transaction, STATUS_APPROVED, STATUS_DECLINED
from ..validation import ValidationError, ConflictError, AccessDeniedError
from . import return_service
from .concurrency import run_with_retry
from .session_service import Identity
from .transaction_service import get_transaction
from ..time_utils import utcnow


DECISIONS = (STATUS_APPROVED, STATUS_DECLINED)


def decide(identity: Identity, transaction_id: str, status: str) -> Transaction:
    """Set a transaction to approved or declined on behalf of an admin."""
    if not identity.is_admin:
        raise AccessDeniedError("Admin access required")
    if status not in DECISIONS:
        raise ValidationError(f"Invalid decision: {status}")

    def _apply():
        transaction = get_transaction(transaction_id)
        previous = transaction.approval_status

        if previous == status:
            raise ConflictError(f"Transaction is already {status}")

        if transaction.is_take and previous == STATUS_APPROVED and status == STATUS_DECLINED:
            blocking = return_service.approved_returns_against(transaction)
            if blocking:
                raise ConflictError(
                    "Cannot decline this take: approved returns exist against it "
                    f"({', '.join(blocking)}). Decline those returns first."
                )

        transaction.approval_status = status
        transaction.approved_by = identity.name
        transaction.approval_date = utcnow()

        if transaction.is_return:
            return_service.apply_return_decision(
                transaction,
                approving=status == STATUS_APPROVED,
                actor_name=identity.name,
            )

        db.session.commit()
        return transaction, previous

    try:
        transaction, previous = run_with_retry(_apply)
    except (ValidationError, ConflictError):
        db.session.rollback()
        raise

    current_app.logger.info(
        "%s %s %s -> %s by %s",
        transaction.transaction_type.capitalize(),
        transaction.id,
        previous,
        status,
        identity.name,
    )
    return transaction


def approve(identity: Identity, transaction_id: str) -> Transaction:
    return decide(identity, transaction_id, STATUS_APPROVED)


def decline(identity: Identity, transaction_id: str) -> Transaction:
    return decide(identity, transaction_id, STATUS_DECLINED)
