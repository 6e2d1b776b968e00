# Overview: Text for "new request" notifications.

"""
Notifications

Delivery (browser notifications, toasts) belongs to the client. The server
only builds the message text and writes it to the log when a request comes
in. A failure here must never fail the submission that triggered it.
"""

from __future__ import annotations

from flask import current_app

from ..models import Transaction


PREVIEW_MATERIALS = 2


def summarize_request(transaction: Transaction) -> dict:
    materials = transaction.materials or []
    count = len(materials)

    preview = ", ".join(
        f"{m.get('name')} ({m.get('return_quantity') or m.get('quantity')} {m.get('unit')})"
        for m in materials[:PREVIEW_MATERIALS]
    )
    more = f" and {count - PREVIEW_MATERIALS} more" if count > PREVIEW_MATERIALS else ""

    kind = "Take" if transaction.is_take else "Return"
    return {
        "title": f"New {kind} Request",
        "body": f"{transaction.worker_name} (ID: {transaction.worker_id})\n{preview}{more}",
        "tag": f"request-{transaction.id}",
    }


def notify_new_request(transaction: Transaction) -> dict | None:
    try:
        summary = summarize_request(transaction)
    except (AttributeError, TypeError, KeyError):
        current_app.logger.warning("Could not build notification for %s", transaction.id, exc_info=True)
        return None

    current_app.logger.info("%s: %s", summary["title"], summary["body"].replace("\n", " | "))
    return summary
