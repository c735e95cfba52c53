# Overview: Service-layer operations for users and their bearer tokens.

from __future__ import annotations

import hashlib
import secrets

from ..extensions import db
from ..errors import ConflictError, ValidationError
from ..models import User, UserRole


def generate_token() -> str:
    """64 hex characters from the OS CSPRNG. Returned to the caller once, never stored."""
    return secrets.token_hex(32)


def hash_token(token: str) -> str:
    return hashlib.sha256(token.encode("utf-8")).hexdigest()


def create_user(name: str, email: str, role: UserRole | str = UserRole.STAFF) -> tuple[User, str]:
    """Create a user and issue its bearer token. Returns (user, plaintext token)."""
    if not name or not name.strip():
        raise ValidationError("name cannot be blank", {"field": "name"})
    if not email or "@" not in email:
        raise ValidationError("email is invalid", {"field": "email"})
    try:
        role = UserRole(role)
    except ValueError:
        raise ValidationError("unknown role", {"field": "role", "value": role})

    email = email.strip().lower()
    if db.session.query(User).filter_by(email=email).first() is not None:
        raise ConflictError("email already registered", {"email": email})

    token = generate_token()
    user = User(name=name.strip(), email=email, role=role, api_token_hash=hash_token(token))
    db.session.add(user)
    db.session.commit()
    return user, token


def rotate_token(user: User) -> str:
    token = generate_token()
    user.api_token_hash = hash_token(token)
    db.session.commit()
    return token


def get_user_by_token(token: str) -> User | None:
    """Active user owning this token, or None."""
    if not token:
        return None
    return (
        db.session.query(User)
        .filter(User.api_token_hash == hash_token(token), User.is_active.is_(True))
        .first()
    )
