from __future__ import annotations

from ..extensions import db
from ..time_utils import to_utc_z
from .enums import UserRole, enum_column


class User(db.Model):
    """
    Actor identity. Session mechanics live outside this service; a user is
    resolved from its bearer token and only its id and role are consumed.
    """
    __tablename__ = "users"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(255), nullable=False)
    email = db.Column(db.String(255), nullable=False, unique=True)
    role = db.Column(enum_column(UserRole), nullable=False, default=UserRole.STAFF)
    # sha256 of the bearer token; the token itself is never stored
    api_token_hash = db.Column(db.String(64), nullable=True, unique=True)
    is_active = db.Column(db.Boolean, nullable=False, default=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "email": self.email,
            "role": self.role.value,
            "is_active": self.is_active,
            "created_at": to_utc_z(self.created_at),
        }
