from __future__ import annotations

from ..extensions import db
from ..time_utils import to_utc_z, utcnow


class AdminPresence(db.Model):
    """Singleton heartbeat row: is an admin dashboard currently open?"""
    __tablename__ = "admin_status"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow)
    admin_email = db.Column(db.String(255), nullable=True)
    last_seen = db.Column(db.DateTime(timezone=True), nullable=True)
    is_online = db.Column(db.Boolean, nullable=False, default=False)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
            "admin_email": self.admin_email,
            "last_seen": to_utc_z(self.last_seen),
            "is_online": self.is_online,
        }
