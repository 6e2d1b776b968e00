# Overview: Pure reconciliation rules for partial returns against take lines.

"""
Return Ledger

The "ledger of grants" is the set of approved take transactions; the
"ledger of settlements" is the set of approved return transactions. For any
reference number:

    returned  = sum(return_quantity of matching lines in approved returns)
    remaining = max(0, take_line.quantity - returned)

Everything here is a pure function of those two lists (plain dicts shaped
like Transaction.to_dict()), so recomputing with no intervening writes
always gives the same answer. Order of returns never changes the totals; it
is only used for the display timeline.
"""

from __future__ import annotations

from dataclasses import dataclass, asdict
from typing import Iterable

from ..validation import MaterialLine, ValidationError


class ReturnValidationError(ValidationError):
    """A return request that would over-return or is otherwise invalid."""

    def __init__(self, message: str, *, material: str | None = None,
                 requested: int | None = None, remaining: int | None = None,
                 reference_number: str | None = None):
        super().__init__(message)
        self.material = material
        self.requested = requested
        self.remaining = remaining
        self.reference_number = reference_number

    def to_dict(self) -> dict:
        return {
            "error": str(self),
            "material": self.material,
            "requested": self.requested,
            "remaining": self.remaining,
            "reference_number": self.reference_number,
        }


class ReferenceNotFoundError(ReturnValidationError):
    """Reference number absent from the approved take ledger."""

    def __init__(self, reference_number: str):
        super().__init__(
            f"Reference number {reference_number} not found.",
            reference_number=reference_number,
        )


@dataclass(frozen=True)
class Availability:
    reference_number: str
    transaction_id: str | None
    name: str
    unit: str
    quantity: int
    returned_quantity: int
    remaining: int
    is_fully_returned: bool

    def to_dict(self) -> dict:
        return asdict(self)


def _lines(transaction: dict) -> list[dict]:
    return transaction.get("materials") or []


def find_take_line(reference_number: str, approved_takes: Iterable[dict]) -> tuple[dict, dict]:
    """Return (take_transaction, take_line) or raise ReferenceNotFoundError."""
    for take in approved_takes:
        for line in _lines(take):
            if line.get("reference_number") == reference_number:
                return take, line
    raise ReferenceNotFoundError(reference_number)


def total_approved_returned(
    reference_number: str,
    approved_returns: Iterable[dict],
    *,
    exclude_id: str | None = None,
    include: dict | None = None,
) -> int:
    """
    Sum return_quantity for `reference_number` over approved returns.

    exclude_id drops a return that is being declined; include adds a return
    that is being approved in the same operation (counted once even if it
    is already in `approved_returns`).
    """
    returns = [r for r in approved_returns if r.get("id") != exclude_id]
    if include is not None:
        returns = [r for r in returns if r.get("id") != include.get("id")]
        returns.append(include)

    total = 0
    for ret in returns:
        for line in _lines(ret):
            if line.get("reference_number") == reference_number:
                total += int(line.get("return_quantity") or 0)
    return total


def build_availability(take: dict, line: dict, returned: int) -> Availability:
    quantity = int(line.get("quantity") or 0)
    remaining = max(0, quantity - returned)
    return Availability(
        reference_number=line.get("reference_number"),
        transaction_id=take.get("id"),
        name=line.get("name", ""),
        unit=line.get("unit") or "pcs",
        quantity=quantity,
        returned_quantity=returned,
        remaining=remaining,
        is_fully_returned=remaining <= 0,
    )


def available_to_return(
    reference_number: str,
    approved_takes: Iterable[dict],
    approved_returns: Iterable[dict],
) -> Availability:
    take, line = find_take_line(reference_number, approved_takes)
    returned = total_approved_returned(reference_number, approved_returns)
    return build_availability(take, line, returned)


def validate_return_request(
    lines: list[MaterialLine],
    approved_takes: list[dict],
    approved_returns: list[dict],
) -> list[dict]:
    """
    Check a whole return submission before anything is written.

    Quantities for the same reference number inside one submission are
    added up, so two lines of 4 against 6 remaining are rejected just like
    one line of 8. Returns the normalized return lines with name, unit and
    quantity copied from the take line.
    """
    requested_so_far: dict[str, int] = {}
    cleaned = []

    for line in lines:
        if not line.reference_number:
            raise ReturnValidationError(
                f"Reference number is required to return {line.name}",
                material=line.name,
            )

        qty = line.return_quantity or 0
        if qty <= 0:
            raise ReturnValidationError(
                f"Return quantity for {line.name} must be greater than 0",
                material=line.name,
                requested=qty,
                reference_number=line.reference_number,
            )

        availability = available_to_return(line.reference_number, approved_takes, approved_returns)
        already = requested_so_far.get(line.reference_number, 0)
        remaining = availability.remaining - already

        if qty > remaining:
            raise ReturnValidationError(
                f"Cannot return {qty} {availability.unit}. Only {remaining} {availability.unit} available.",
                material=availability.name,
                requested=qty,
                remaining=remaining,
                reference_number=line.reference_number,
            )

        requested_so_far[line.reference_number] = already + qty
        cleaned.append(MaterialLine(
            name=availability.name,
            quantity=availability.quantity,
            unit=availability.unit,
            reference_number=line.reference_number,
            return_quantity=qty,
        ).to_dict(is_return=True))

    return cleaned


def apply_approval(materials: list[dict], reference_number: str, total: int, stamp: str) -> list[dict]:
    """New take materials with the line's returned_* fields set from `total`."""
    updated = []
    for material in materials:
        if material.get("reference_number") != reference_number:
            updated.append(material)
            continue
        fully = total >= int(material.get("quantity") or 0)
        updated.append({
            **material,
            "returned": fully,
            "returned_quantity": total,
            "return_date": stamp if fully else material.get("return_date"),
            "return_declined": False,
            "return_declined_by": None,
            "return_declined_date": None,
        })
    return updated


def apply_decline(
    materials: list[dict],
    reference_number: str,
    total: int,
    declined_by: str,
    stamp: str,
) -> list[dict]:
    """New take materials after a return against the line was declined."""
    updated = []
    for material in materials:
        if material.get("reference_number") != reference_number:
            updated.append(material)
            continue
        fully = total >= int(material.get("quantity") or 0)
        updated.append({
            **material,
            "returned": fully,
            "returned_quantity": total,
            "return_date": material.get("return_date") if fully else None,
            "return_declined": True,
            "return_declined_by": declined_by,
            "return_declined_date": stamp,
        })
    return updated


def apply_recount(materials: list[dict], reference_number: str, total: int) -> list[dict]:
    """Refresh only the returned amount, leaving decline bookkeeping alone."""
    updated = []
    for material in materials:
        if material.get("reference_number") != reference_number:
            updated.append(material)
            continue
        fully = total >= int(material.get("quantity") or 0)
        updated.append({
            **material,
            "returned": fully,
            "returned_quantity": total,
            "return_date": material.get("return_date") if fully else None,
        })
    return updated


def return_history(reference_number: str, approved_returns: Iterable[dict]) -> list[dict]:
    """Chronological timeline of approved returns against one take line."""
    ordered = sorted(approved_returns, key=lambda r: r.get("created_at") or "")
    history = []
    for ret in ordered:
        quantity = sum(
            int(line.get("return_quantity") or 0)
            for line in _lines(ret)
            if line.get("reference_number") == reference_number
        )
        if quantity > 0:
            history.append({
                "returner": ret.get("worker_name"),
                "quantity": quantity,
                "date": ret.get("transaction_date"),
                "time": ret.get("transaction_time"),
                "transaction_id": ret.get("id"),
            })
    return history


def summarize_history(quantity: int, history: list[dict]) -> dict:
    total = sum(entry["quantity"] for entry in history)
    remaining = quantity - total
    return {
        "total_returned": total,
        "remaining": max(0, remaining),
        "is_fully_returned": remaining <= 0,
    }


RETURN_STATE_RETURNED = "returned"
RETURN_STATE_PARTIAL = "partially_returned"
RETURN_STATE_NOT_RETURNED = "not_returned"


def material_return_state(transaction: dict) -> str | None:
    """Classify a take transaction for the material-return filter."""
    if transaction.get("transaction_type") != "take":
        return None
    lines = _lines(transaction)
    if not lines:
        return RETURN_STATE_NOT_RETURNED
    if all(line.get("returned") is True for line in lines):
        return RETURN_STATE_RETURNED
    returned = [int(line.get("returned_quantity") or 0) for line in lines]
    if all(qty == 0 for qty in returned):
        return RETURN_STATE_NOT_RETURNED
    if any(qty > 0 for qty in returned) and any(
        qty < int(line.get("quantity") or 0) for qty, line in zip(returned, lines)
    ):
        return RETURN_STATE_PARTIAL
    return RETURN_STATE_RETURNED
