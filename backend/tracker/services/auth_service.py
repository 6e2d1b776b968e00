# Overview: Requester registry, password hashing and login checks.

"""
Authentication

Three ways in:
- admin: email + the shared ADMIN_PASSWORD + a display name
- requester: requester_id + password checked against the requesters table
- worker: ad-hoc name + worker ID, not checked against any registry

Passwords are hashed with bcrypt; nothing stores plaintext.
"""

from __future__ import annotations

import hmac

import bcrypt
from flask import current_app
from sqlalchemy.exc import IntegrityError

from ..extensions import db
from ..models import Requester
from ..validation import ValidationError, ConflictError, NotFoundError, require_text
from .session_service import Identity, ROLE_ADMIN, ROLE_REQUESTER, ROLE_WORKER


class AuthenticationError(Exception):
    """Raised for bad credentials."""
    pass


def hash_password(password: str) -> str:
    if not password:
        raise ValidationError("Password is required")
    salt = bcrypt.gensalt(rounds=current_app.config.get("BCRYPT_ROUNDS", 12))
    hashed = bcrypt.hashpw(password.encode('utf-8'), salt)
    return hashed.decode('utf-8')


def verify_password(password: str, password_hash: str) -> bool:
    try:
        return bcrypt.checkpw(password.encode('utf-8'), password_hash.encode('utf-8'))
    except ValueError:
        # Not a bcrypt hash
        return False


def check_shared_password(supplied: str | None, config_key: str) -> bool:
    """Constant-time comparison against a password from app config."""
    expected = current_app.config.get(config_key) or ""
    return hmac.compare_digest((supplied or "").encode('utf-8'), expected.encode('utf-8'))


# =============================================================================
# LOGIN
# =============================================================================

def authenticate_admin(email: str, password: str, name: str | None = None) -> Identity:
    email = require_text(email, "email")
    if not check_shared_password(password, "ADMIN_PASSWORD"):
        raise AuthenticationError("Invalid email or password")
    display_name = (name or "").strip() or "Admin"
    return Identity(role=ROLE_ADMIN, name=display_name, email=email)


def authenticate_requester(requester_id: str, password: str) -> Identity:
    requester_id = require_text(requester_id, "requester_id")
    requester = db.session.query(Requester).filter_by(requester_id=requester_id).first()
    if not requester or not verify_password(password or "", requester.password_hash):
        raise AuthenticationError("Invalid requester ID or password")
    return Identity(role=ROLE_REQUESTER, name=requester.name, worker_id=requester.requester_id)


def worker_identity(worker_name: str, worker_id: str) -> Identity:
    """Ad-hoc login: both fields are required, neither is verified."""
    if not (worker_name or "").strip() or not (worker_id or "").strip():
        raise ValidationError("Please fill in worker name and ID")
    return Identity(role=ROLE_WORKER, name=worker_name.strip(), worker_id=worker_id.strip())


# =============================================================================
# REQUESTER REGISTRY
# =============================================================================

def list_requesters() -> list[Requester]:
    return db.session.query(Requester).order_by(Requester.created_at.desc(), Requester.id.desc()).all()


def get_requester(requester_pk: int) -> Requester:
    requester = db.session.get(Requester, requester_pk)
    if not requester:
        raise NotFoundError(f"Requester {requester_pk} not found")
    return requester


def create_requester(requester_id: str, name: str, password: str) -> Requester:
    if not (requester_id or "").strip() or not (name or "").strip() or not password:
        raise ValidationError("All fields are required")

    requester_id = requester_id.strip()
    if db.session.query(Requester).filter_by(requester_id=requester_id).first():
        raise ConflictError(f"Requester ID {requester_id} already exists")

    requester = Requester(
        requester_id=requester_id,
        name=name.strip(),
        password_hash=hash_password(password),
    )
    db.session.add(requester)
    try:
        db.session.commit()
    except IntegrityError:
        db.session.rollback()
        raise ConflictError(f"Requester ID {requester_id} already exists")

    current_app.logger.info("Requester %s created", requester_id)
    return requester


def update_requester(
    requester_pk: int,
    requester_id: str | None = None,
    name: str | None = None,
    password: str | None = None,
) -> Requester:
    """Blank password keeps the current one."""
    requester = get_requester(requester_pk)

    if requester_id is not None:
        requester_id = requester_id.strip()
        if not requester_id:
            raise ValidationError("requester_id cannot be blank")
        clash = db.session.query(Requester).filter(
            Requester.requester_id == requester_id,
            Requester.id != requester.id,
        ).first()
        if clash:
            raise ConflictError(f"Requester ID {requester_id} already exists")
        requester.requester_id = requester_id

    if name is not None:
        if not name.strip():
            raise ValidationError("name cannot be blank")
        requester.name = name.strip()

    if password:
        requester.password_hash = hash_password(password)

    db.session.commit()
    return requester


def delete_requester(requester_pk: int) -> None:
    requester = get_requester(requester_pk)
    db.session.delete(requester)
    db.session.commit()
    current_app.logger.info("Requester %s deleted", requester.requester_id)
