# Overview: Bearer session tokens and the explicit caller identity.

"""
Session Token Management

WHY: Every service call takes the caller's identity as an argument instead of
reading it from ambient state. A session token maps to exactly one identity,
fixed at login time.

- Cryptographically secure random tokens (32 bytes)
- Tokens hashed with SHA-256 before storage
- Absolute timeout from SESSION_TIMEOUT_HOURS
- Revocable on logout
"""

from __future__ import annotations

import hashlib
import secrets
from dataclasses import dataclass
from datetime import timedelta

from flask import current_app

from ..extensions import db
from ..models import SessionToken
from ..time_utils import utcnow


ROLE_ADMIN = "admin"
ROLE_REQUESTER = "requester"
ROLE_WORKER = "worker"
ROLES = (ROLE_ADMIN, ROLE_REQUESTER, ROLE_WORKER)


@dataclass(frozen=True)
class Identity:
    """
    Who is calling.

    For admins `worker_id` is None and `email` is set; for requesters and
    ad-hoc workers `worker_id` is the ID their transactions are filed under.
    """
    role: str
    name: str
    worker_id: str | None = None
    email: str | None = None

    @property
    def is_admin(self) -> bool:
        return self.role == ROLE_ADMIN

    def owns(self, transaction) -> bool:
        return (
            not self.is_admin
            and transaction.worker_id == self.worker_id
            and transaction.worker_name == self.name
        )

    def to_dict(self) -> dict:
        return {
            "role": self.role,
            "name": self.name,
            "worker_id": self.worker_id,
            "email": self.email,
        }


def generate_token() -> str:
    return secrets.token_hex(32)


def hash_token(token: str) -> str:
    return hashlib.sha256(token.encode('utf-8')).hexdigest()


def create_session(identity: Identity) -> tuple[SessionToken, str]:
    """
    Persist a session for `identity`.

    Returns (session_record, plaintext_token); only the hash is stored.
    """
    if identity.role not in ROLES:
        raise ValueError(f"Unknown role: {identity.role}")

    plaintext_token = generate_token()
    now = utcnow()
    hours = current_app.config.get("SESSION_TIMEOUT_HOURS", 12)

    subject_id = identity.email if identity.is_admin else identity.worker_id
    session = SessionToken(
        token_hash=hash_token(plaintext_token),
        role=identity.role,
        subject_name=identity.name,
        subject_id=subject_id or "",
        created_at=now,
        expires_at=now + timedelta(hours=hours),
        is_revoked=False,
    )
    db.session.add(session)
    db.session.commit()

    return session, plaintext_token


def validate_session(token: str) -> Identity | None:
    """Identity for a live token, or None if unknown, revoked or expired."""
    session = db.session.query(SessionToken).filter_by(
        token_hash=hash_token(token),
        is_revoked=False,
    ).first()

    if not session:
        return None

    if session.expires_at < utcnow():
        return None

    if session.role == ROLE_ADMIN:
        return Identity(role=ROLE_ADMIN, name=session.subject_name, email=session.subject_id)
    return Identity(role=session.role, name=session.subject_name, worker_id=session.subject_id)


def revoke_session(token: str) -> bool:
    session = db.session.query(SessionToken).filter_by(token_hash=hash_token(token)).first()
    if not session or session.is_revoked:
        return False
    session.is_revoked = True
    session.revoked_at = utcnow()
    db.session.commit()
    return True


def purge_expired_sessions() -> int:
    """Delete expired or revoked sessions. Returns number removed."""
    now = utcnow()
    count = db.session.query(SessionToken).filter(
        db.or_(SessionToken.expires_at < now, SessionToken.is_revoked == True)  # noqa: E712
    ).delete(synchronize_session=False)
    db.session.commit()
    return count
