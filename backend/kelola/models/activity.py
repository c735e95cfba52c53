from __future__ import annotations

from ..extensions import db
from ..time_utils import to_utc_z
from .enums import ActivityAction, enum_column


class ActivityLog(db.Model):
    """
    Append-only audit trail of user actions.

    Written inside the same DB transaction as the change it records, so an
    aborted workflow leaves no log entry behind.
    """
    __tablename__ = "activity_logs"
    __table_args__ = (
        db.Index("ix_activity_resource", "resource", "resource_id"),
        db.Index("ix_activity_user_created", "user_id", "created_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)
    action = db.Column(enum_column(ActivityAction), nullable=False, index=True)
    resource = db.Column(db.String(64), nullable=False)
    resource_id = db.Column(db.String(64), nullable=True)
    details = db.Column(db.JSON, nullable=True)

    created_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        index=True,
    )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "user_id": self.user_id,
            "action": self.action.value,
            "resource": self.resource,
            "resource_id": self.resource_id,
            "details": self.details,
            "created_at": to_utc_z(self.created_at),
        }
