# Overview: Admin dashboard heartbeat ("is an admin online?").

from __future__ import annotations

from datetime import timedelta

from flask import current_app

from ..extensions import db
from ..models import AdminPresence
from ..time_utils import utcnow


def _current_row() -> AdminPresence | None:
    return db.session.query(AdminPresence).order_by(AdminPresence.id.asc()).first()


def heartbeat(admin_email: str | None) -> AdminPresence:
    """Upsert the single presence row as online, seen now."""
    row = _current_row()
    now = utcnow()
    if row is None:
        row = AdminPresence(created_at=now)
        db.session.add(row)

    row.admin_email = admin_email
    row.last_seen = now
    row.is_online = True
    db.session.commit()
    return row


def go_offline(admin_email: str | None = None) -> AdminPresence | None:
    row = _current_row()
    if row is None:
        return None
    if admin_email and row.admin_email and row.admin_email != admin_email:
        # Another admin took over the heartbeat; leave them online
        return row

    row.is_online = False
    row.last_seen = utcnow()
    db.session.commit()
    current_app.logger.info("Admin %s went offline", admin_email or row.admin_email)
    return row


def get_status() -> dict:
    """
    Presence as seen by workers.

    `is_active` is true only while the row says online AND the last
    heartbeat is newer than ADMIN_PRESENCE_TIMEOUT_SECONDS, so a closed tab
    that never sent a logout still goes stale.
    """
    row = _current_row()
    if row is None:
        return {"is_online": False, "is_active": False, "admin_email": None, "last_seen": None}

    timeout = current_app.config.get("ADMIN_PRESENCE_TIMEOUT_SECONDS", 30)
    fresh = row.last_seen is not None and utcnow() - row.last_seen <= timedelta(seconds=timeout)
    data = row.to_dict()
    data["is_active"] = bool(row.is_online and fresh)
    return data
