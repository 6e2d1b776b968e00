from __future__ import annotations

from ..extensions import db
from ..time_utils import to_utc_z, utcnow


class Requester(db.Model):
    """
    Login credential for the password-based worker portal.

    password_hash holds a bcrypt hash; the plaintext is never stored.
    """
    __tablename__ = "requesters"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow, index=True)
    requester_id = db.Column(db.String(64), nullable=False, unique=True, index=True)
    name = db.Column(db.String(120), nullable=False)
    password_hash = db.Column(db.String(255), nullable=False)

    def to_dict(self) -> dict:
        # Never include password_hash
        return {
            "id": self.id,
            "created_at": to_utc_z(self.created_at),
            "requester_id": self.requester_id,
            "name": self.name,
        }

    def __repr__(self) -> str:
        return f"<Requester {self.requester_id}>"


class SessionToken(db.Model):
    """
    Bearer session for admins, registered requesters and ad-hoc workers.

    Only the SHA-256 of the token is stored. The subject fields are copied
    at login so the identity stays fixed for the lifetime of the session.
    """
    __tablename__ = "session_tokens"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    token_hash = db.Column(db.String(64), nullable=False, unique=True, index=True)

    role = db.Column(db.String(16), nullable=False)  # admin | requester | worker
    subject_name = db.Column(db.String(120), nullable=False)
    subject_id = db.Column(db.String(120), nullable=False)  # worker ID, requester ID or admin email

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)
    expires_at = db.Column(db.DateTime(timezone=True), nullable=False)

    is_revoked = db.Column(db.Boolean, nullable=False, default=False)
    revoked_at = db.Column(db.DateTime(timezone=True), nullable=True)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "role": self.role,
            "subject_name": self.subject_name,
            "subject_id": self.subject_id,
            "created_at": to_utc_z(self.created_at),
            "expires_at": to_utc_z(self.expires_at),
            "is_revoked": self.is_revoked,
        }
