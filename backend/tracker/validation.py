from __future__ import annotations

import re
from dataclasses import dataclass, asdict
from datetime import datetime
from typing import Any


REFERENCE_NUMBER_PATTERN = re.compile(r"^\d{6}$")
DEFAULT_UNIT = "pcs"


class ValidationError(ValueError):
    """400-level input problem."""


class ConflictError(ValueError):
    """409-level business rule conflict (e.g., duplicate requester ID)."""


class NotFoundError(LookupError):
    """404-level missing row."""


class AccessDeniedError(PermissionError):
    """403-level: wrong role, not the owner, or a wrong confirmation password."""


def coerce_int(value: Any, field_name: str) -> int:
    """
    Strict integer coercion for quantities.

    Rejects booleans, floats, decimals and scientific notation so that a
    quantity can never silently round.
    """
    if isinstance(value, int) and not isinstance(value, bool):
        return value
    if isinstance(value, str):
        stripped = value.strip()
        if not stripped:
            raise ValidationError(f"{field_name} must be an integer")
        if 'e' in stripped.lower():
            raise ValidationError(f"{field_name} must be a plain integer (scientific notation not allowed)")
        if '.' in stripped:
            raise ValidationError(f"{field_name} must be an integer (no decimals)")
        try:
            return int(stripped)
        except ValueError:
            raise ValidationError(f"{field_name} must be an integer")
    if isinstance(value, float):
        raise ValidationError(f"{field_name} must be an integer, not a decimal")
    raise ValidationError(f"{field_name} must be an integer")


def require_text(value: Any, field_name: str) -> str:
    if value is None or not str(value).strip():
        raise ValidationError(f"{field_name} is required")
    return str(value).strip()


def validate_date(value: Any, field_name: str = "transaction_date") -> str:
    """Accepts 'YYYY-MM-DD' and returns it unchanged."""
    text = require_text(value, field_name)
    try:
        datetime.strptime(text, "%Y-%m-%d")
    except ValueError:
        raise ValidationError(f"{field_name} must be a date in YYYY-MM-DD format")
    return text


def validate_time(value: Any, field_name: str = "transaction_time") -> str:
    """Accepts 'HH:MM' (seconds are dropped)."""
    text = require_text(value, field_name)
    for fmt in ("%H:%M", "%H:%M:%S"):
        try:
            return datetime.strptime(text, fmt).strftime("%H:%M")
        except ValueError:
            continue
    raise ValidationError(f"{field_name} must be a time in HH:MM format")


def validate_reference_number(value: Any) -> str:
    text = require_text(value, "reference_number").lstrip("#")
    if not REFERENCE_NUMBER_PATTERN.match(text):
        raise ValidationError(f"Reference number {text} must be a 6-digit number")
    return text


@dataclass
class MaterialLine:
    """
    One material quantity inside a transaction's `materials` document.

    Take lines carry the reference number and the derived returned_* fields;
    return lines carry `return_quantity`. Unknown keys are dropped on the way
    in so the stored document only ever holds these fields.
    """
    name: str
    quantity: int
    unit: str = DEFAULT_UNIT
    reference_number: str | None = None
    taken_date: str | None = None
    returned: bool = False
    returned_quantity: int = 0
    return_date: str | None = None
    return_declined: bool = False
    return_declined_by: str | None = None
    return_declined_date: str | None = None
    return_quantity: int | None = None

    @classmethod
    def from_dict(cls, data: dict, *, is_return: bool = False) -> "MaterialLine":
        if not isinstance(data, dict):
            raise ValidationError("Each material must be an object")

        name = require_text(data.get("name"), "Material name")
        quantity = coerce_int(data.get("quantity", 1), "quantity")
        if quantity < 1:
            raise ValidationError(f"Quantity for {name} must be at least 1")

        unit = str(data.get("unit") or DEFAULT_UNIT).strip() or DEFAULT_UNIT

        reference_number = data.get("reference_number")
        if reference_number not in (None, ""):
            reference_number = validate_reference_number(reference_number)
        else:
            reference_number = None

        return_quantity = None
        if is_return:
            return_quantity = coerce_int(data.get("return_quantity"), "return_quantity")
            if return_quantity <= 0:
                raise ValidationError(f"Return quantity for {name} must be greater than 0")

        returned_quantity = coerce_int(data.get("returned_quantity") or 0, "returned_quantity")

        return cls(
            name=name,
            quantity=quantity,
            unit=unit,
            reference_number=reference_number,
            taken_date=data.get("taken_date"),
            returned=bool(data.get("returned", False)),
            returned_quantity=returned_quantity,
            return_date=data.get("return_date"),
            return_declined=bool(data.get("return_declined", False)),
            return_declined_by=data.get("return_declined_by"),
            return_declined_date=data.get("return_declined_date"),
            return_quantity=return_quantity,
        )

    def to_dict(self, *, is_return: bool = False) -> dict:
        data = asdict(self)
        if is_return:
            # Return lines only carry what identifies the take line plus the amount
            keep = {"name", "quantity", "unit", "reference_number", "return_quantity"}
            return {k: v for k, v in data.items() if k in keep}
        data.pop("return_quantity", None)
        return data


def clean_material_list(raw: Any, *, is_return: bool = False) -> list[MaterialLine]:
    """
    Validate a submitted materials list.

    Lines with a blank name are dropped first (an empty trailing row in a
    form is not an error); an empty result is.
    """
    if raw is None:
        raw = []
    if not isinstance(raw, list):
        raise ValidationError("materials must be a list")

    lines = []
    for item in raw:
        if isinstance(item, dict) and not str(item.get("name") or "").strip():
            if is_return and item.get("reference_number"):
                # Return lines are identified by reference number; the name is
                # filled in from the take line later.
                item = {**item, "name": f"#{item['reference_number']}"}
            else:
                continue
        lines.append(MaterialLine.from_dict(item, is_return=is_return))

    if not lines:
        raise ValidationError("Please add at least one material")
    return lines
