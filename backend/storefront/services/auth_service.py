# Overview: Password hashing and the one-time admin bootstrap.

"""
Admin bootstrap

WHY: The store needs exactly one administrator account to exist before admin
order operations (tracking, refunds) can run. This is created once at
deployment by `flask system create-admin`, not checked on every request.

SECURITY NOTES:
- Passwords hashed with bcrypt (cost factor 12)
- Minimum 8 characters with upper, lower, digit and special char
"""

import bcrypt
import re

from ..extensions import db
from ..models import User
from ..models.auth import ROLE_ADMIN


class PasswordValidationError(Exception):
    """Raised when password doesn't meet strength requirements."""
    pass


def validate_password_strength(password: str) -> None:
    """
    Raises PasswordValidationError if requirements not met.
    """
    if len(password) < 8:
        raise PasswordValidationError("Password must be at least 8 characters long")

    if not re.search(r'[A-Z]', password):
        raise PasswordValidationError("Password must contain at least one uppercase letter")

    if not re.search(r'[a-z]', password):
        raise PasswordValidationError("Password must contain at least one lowercase letter")

    if not re.search(r'\d', password):
        raise PasswordValidationError("Password must contain at least one digit")

    if not re.search(r"[!@#$%^&*(),.'\":{}|<>]", password):
        raise PasswordValidationError("Password must contain at least one special character")


def hash_password(password: str) -> str:
    """Hash password using bcrypt with cost factor 12 (validated first)."""
    validate_password_strength(password)
    salt = bcrypt.gensalt(rounds=12)
    hashed = bcrypt.hashpw(password.encode('utf-8'), salt)
    return hashed.decode('utf-8')


def ensure_admin(email: str, password: str, name: str = "Administrator") -> tuple[User, bool]:
    """
    Create the administrator account if none exists.

    Idempotent: if an admin already exists it is returned unchanged.

    Returns:
        (admin_user, created)

    Raises:
        PasswordValidationError: weak password on first creation
        ValueError: email already used by a non-admin account
    """
    existing = db.session.query(User).filter_by(role=ROLE_ADMIN).order_by(User.id).first()
    if existing:
        return existing, False

    email = email.strip().lower()
    if db.session.query(User).filter_by(email=email).first():
        raise ValueError(f"Email {email} already belongs to a non-admin account")

    admin = User(
        name=name,
        email=email,
        password_hash=hash_password(password),
        role=ROLE_ADMIN,
        is_active=True,
    )
    db.session.add(admin)
    db.session.commit()
    return admin, True
