# Overview: Service-layer operations for admin sessions; opaque bearer tokens stored as hashes.

"""
Admin Session Token Management

SECURITY FEATURES:
- Cryptographically secure random tokens (32 bytes)
- Tokens hashed with SHA-256 before storage (fast, one-way)
- Absolute timeout of ADMIN_SESSION_HOURS
- Revocable
"""

import secrets
import hashlib
from datetime import timedelta

from flask import current_app

from ..actor import Actor
from ..errors import NotFoundError, ValidationError
from ..extensions import db
from ..models import Admin, AdminSession
from storefront.time_utils import utcnow


def generate_token() -> str:
    """64-character hex string. This is the plaintext sent to the client (never stored)."""
    return secrets.token_hex(32)


def hash_token(token: str) -> str:
    """SHA-256 is sufficient for high-entropy tokens."""
    return hashlib.sha256(token.encode('utf-8')).hexdigest()


def create_admin(name: str, email: str) -> Admin:
    name = (name or "").strip()
    email = (email or "").strip().lower()
    if not name or "@" not in email:
        raise ValidationError("Admin name and a valid email are required")
    if Admin.query.filter_by(email=email).first():
        raise ValidationError(f"Admin {email} already exists")

    admin = Admin(name=name, email=email, is_active=True)
    db.session.add(admin)
    db.session.commit()
    return admin


def create_session(admin_id: int) -> tuple[AdminSession, str]:
    """
    Create a new session token for an admin.

    Returns (session_record, plaintext_token).
    Client receives plaintext_token, database stores only the hash.
    """
    admin = db.session.get(Admin, admin_id)
    if admin is None or not admin.is_active:
        raise NotFoundError("Admin not found or inactive")

    plaintext_token = generate_token()
    now = utcnow()
    hours = current_app.config.get("ADMIN_SESSION_HOURS", 24)

    session = AdminSession(
        admin_id=admin.id,
        token_hash=hash_token(plaintext_token),
        created_at=now,
        expires_at=now + timedelta(hours=hours),
        is_revoked=False,
    )
    db.session.add(session)
    db.session.commit()
    return session, plaintext_token


def validate_session(token: str) -> Actor | None:
    """
    Resolve a bearer token to the acting admin.

    Returns None if the token is unknown, expired or revoked, or the admin
    has been deactivated.
    """
    if not token:
        return None

    session = AdminSession.query.filter_by(token_hash=hash_token(token), is_revoked=False).first()
    if session is None:
        return None
    if session.expires_at < utcnow():
        return None

    admin = session.admin
    if admin is None or not admin.is_active:
        return None
    return Actor.from_admin(admin)


def revoke_session(token: str) -> bool:
    session = AdminSession.query.filter_by(token_hash=hash_token(token), is_revoked=False).first()
    if session is None:
        return False
    session.is_revoked = True
    session.revoked_at = utcnow()
    db.session.commit()
    return True
