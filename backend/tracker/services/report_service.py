# Overview: Excel export and printable receipts for transactions.

from __future__ import annotations

import io
from datetime import datetime

from flask import current_app, render_template
from openpyxl import Workbook
from openpyxl.styles import Font

from ..models import Transaction
from ..validation import ValidationError, NotFoundError, validate_date
from . import return_service
from .return_ledger import summarize_history
from ..time_utils import format_stamp, utcnow, to_utc_z


EXPORT_SHEET_TITLE = "Transactions"
EXPORT_COLUMNS = (
    "Date",
    "Time",
    "Type",
    "Worker Name",
    "Worker ID",
    "Material",
    "Quantity",
    "Unit",
    "Reference Number",
    "Returned Quantity",
    "Status",
    "Notes",
)


# =============================================================================
# EXCEL EXPORT
# =============================================================================

def export_rows(transactions: list[Transaction]) -> list[list]:
    """One row per material line, in the order of EXPORT_COLUMNS."""
    rows = []
    for tx in transactions:
        for material in tx.materials or []:
            if tx.is_return:
                quantity = material.get("return_quantity")
                returned = ""
            else:
                quantity = material.get("quantity")
                returned = material.get("returned_quantity") or 0
            rows.append([
                tx.transaction_date,
                tx.transaction_time,
                tx.transaction_type.capitalize(),
                tx.worker_name,
                tx.worker_id,
                material.get("name"),
                quantity,
                material.get("unit"),
                material.get("reference_number") or "",
                returned,
                tx.approval_status.capitalize(),
                tx.notes or "",
            ])
    return rows


def export_workbook(transactions: list[Transaction]) -> io.BytesIO:
    wb = Workbook()
    sheet = wb.active
    sheet.title = EXPORT_SHEET_TITLE

    sheet.append(list(EXPORT_COLUMNS))
    for cell in sheet[1]:
        cell.font = Font(bold=True)

    for row in export_rows(transactions):
        sheet.append(row)

    for column_cells in sheet.columns:
        width = max(len(str(c.value)) if c.value is not None else 0 for c in column_cells)
        sheet.column_dimensions[column_cells[0].column_letter].width = min(max(width + 2, 10), 50)

    buffer = io.BytesIO()
    wb.save(buffer)
    buffer.seek(0)

    current_app.logger.info("Exported %d transactions to Excel", len(transactions))
    return buffer


def export_filename(today: datetime | None = None) -> str:
    return f"Materials_{(today or utcnow()).strftime('%Y-%m-%d')}.xlsx"


# =============================================================================
# RECEIPTS
# =============================================================================

def receipt_filename(transaction: Transaction) -> str:
    """'<worker_id> dd/mm/yy HH:MM', used as the printable page title."""
    try:
        when = datetime.strptime(
            f"{transaction.transaction_date} {transaction.transaction_time}", "%Y-%m-%d %H:%M"
        )
    except (TypeError, ValueError):
        when = transaction.created_at or utcnow()
    return f"{transaction.worker_id} {when.strftime('%d/%m/%y %H:%M')}"


def _receipt_context(transaction: Transaction, approved_returns: list[dict]) -> dict:
    histories = return_service.histories_for(transaction, approved_returns)
    lines = []
    for material in transaction.materials or []:
        ref = material.get("reference_number")
        history = histories.get(ref, [])
        entry = {**material, "history": history}
        if transaction.is_take:
            entry.update(summarize_history(int(material.get("quantity") or 0), history))
        lines.append(entry)

    return {
        "transaction": transaction.to_dict(),
        "title": receipt_filename(transaction),
        "lines": lines,
        "approval_date": format_stamp(transaction.approval_date) if transaction.approval_date else None,
    }


def render_receipt(transaction: Transaction) -> str:
    return render_template(
        "receipt.html",
        company_name=current_app.config.get("COMPANY_NAME"),
        generated_at=to_utc_z(utcnow()),
        receipt=_receipt_context(transaction, return_service.fetch_approved_returns()),
    )


def select_for_bulk_print(
    transactions: list[Transaction],
    *,
    start_date: str | None = None,
    end_date: str | None = None,
    worker_id: str | None = None,
) -> list[Transaction]:
    """Narrow an already-visible list by date window and worker ID (substring)."""
    if start_date:
        validate_date(start_date, "start_date")
    if end_date:
        validate_date(end_date, "end_date")
    if start_date and end_date and start_date > end_date:
        raise ValidationError("start_date must not be after end_date")

    needle = (worker_id or "").strip().lower()
    selected = []
    for tx in transactions:
        if start_date and tx.transaction_date < start_date:
            continue
        if end_date and tx.transaction_date > end_date:
            continue
        if needle and needle not in (tx.worker_id or "").lower():
            continue
        selected.append(tx)
    return selected


def render_bulk_receipts(transactions: list[Transaction]) -> str:
    if not transactions:
        raise NotFoundError("No transactions match the selected filters")

    approved_returns = return_service.fetch_approved_returns()
    receipts = [_receipt_context(tx, approved_returns) for tx in transactions]
    return render_template(
        "bulk_receipts.html",
        company_name=current_app.config.get("COMPANY_NAME"),
        generated_at=to_utc_z(utcnow()),
        receipts=receipts,
    )
