# Overview: Reference number generation and uniqueness-checked allocation.

"""
Reference Numbers

Every take line gets a 6-digit reference number that later return requests
cite. A submission with n lines gets n consecutive numbers starting from one
random base, so the lines of one take read as a block (512340, 512341, ...).

UNIQUENESS: random bases alone only make collisions unlikely. The allocator
checks each candidate batch against the reference_numbers index and draws
again on a hit; the unique constraint on that table catches the remaining
window between check and insert.
"""

from __future__ import annotations

import random

from ..extensions import db
from ..models import ReferenceNumber
from ..validation import ValidationError


REFERENCE_MIN = 100000
REFERENCE_MAX = 999999
DEFAULT_ALLOCATION_ATTEMPTS = 20


class ReferenceAllocationError(RuntimeError):
    """Raised when no free block of reference numbers could be found."""


def generate_reference_number(rng: random.Random | None = None) -> str:
    rng = rng or random
    return str(rng.randint(REFERENCE_MIN, REFERENCE_MAX))


def generate_sequential_reference_numbers(
    count: int,
    start: int | None = None,
    rng: random.Random | None = None,
) -> list[str]:
    """
    Return `count` consecutive reference numbers.

    The base is drawn so the whole block stays within six digits.
    """
    if count < 1:
        raise ValidationError("At least one reference number must be generated")
    if count > REFERENCE_MAX - REFERENCE_MIN + 1:
        raise ValidationError("Too many materials in one submission")

    if start is None:
        rng = rng or random
        start = rng.randint(REFERENCE_MIN, REFERENCE_MAX - count + 1)
    elif start < REFERENCE_MIN or start + count - 1 > REFERENCE_MAX:
        raise ValidationError(f"Reference block starting at {start} does not fit in six digits")

    return [str(start + i) for i in range(count)]


def find_taken_numbers(numbers: list[str]) -> set[str]:
    """Which of `numbers` are already in the index."""
    if not numbers:
        return set()
    rows = db.session.query(ReferenceNumber.reference_number).filter(
        ReferenceNumber.reference_number.in_(numbers)
    ).all()
    return {row[0] for row in rows}


def allocate_reference_numbers(
    count: int,
    *,
    max_attempts: int = DEFAULT_ALLOCATION_ATTEMPTS,
    rng: random.Random | None = None,
) -> list[str]:
    """
    Draw a block of `count` consecutive numbers none of which is in use.

    Does not write anything; the caller inserts ReferenceNumber rows in the
    same commit as the take transaction.
    """
    for _ in range(max_attempts):
        candidate = generate_sequential_reference_numbers(count, rng=rng)
        if not find_taken_numbers(candidate):
            return candidate
    raise ReferenceAllocationError(
        f"Could not allocate {count} unused reference numbers after {max_attempts} attempts"
    )
