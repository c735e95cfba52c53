# Overview: Service-layer operations for the activity log; append-only audit of user actions.

from __future__ import annotations

from datetime import datetime

from sqlalchemy import func

from ..extensions import db
from ..models import ActivityLog, ActivityAction


def append_activity(
    *,
    action: ActivityAction,
    resource: str,
    resource_id=None,
    user_id: int | None = None,
    details: dict | None = None,
) -> ActivityLog:
    """
    Append one activity row in the caller's DB transaction.

    - No domain logic here.
    - No updates/deletes of existing rows.
    """
    entry = ActivityLog(
        user_id=user_id,
        action=action,
        resource=resource,
        resource_id=str(resource_id) if resource_id is not None else None,
        details=details,
    )
    db.session.add(entry)
    db.session.flush()
    return entry


def _filtered(
    *,
    user_id: int | None = None,
    action: ActivityAction | None = None,
    resource: str | None = None,
    start: datetime | None = None,
    end: datetime | None = None,
):
    q = ActivityLog.query
    if user_id is not None:
        q = q.filter(ActivityLog.user_id == user_id)
    if action is not None:
        q = q.filter(ActivityLog.action == action)
    if resource:
        q = q.filter(ActivityLog.resource == resource)
    if start is not None:
        q = q.filter(ActivityLog.created_at >= start)
    if end is not None:
        q = q.filter(ActivityLog.created_at <= end)
    return q


def list_activity(*, limit: int = 50, offset: int = 0, **filters) -> dict:
    q = _filtered(**filters)
    total = q.count()
    rows = (
        q.order_by(ActivityLog.created_at.desc(), ActivityLog.id.desc())
        .offset(offset)
        .limit(limit)
        .all()
    )
    return {"logs": rows, "total": total, "limit": limit, "offset": offset}


def activity_stats(*, start: datetime | None = None, end: datetime | None = None) -> dict:
    q = _filtered(start=start, end=end)
    by_action = dict(
        q.with_entities(ActivityLog.action, func.count(ActivityLog.id))
        .group_by(ActivityLog.action)
        .all()
    )
    by_resource = dict(
        q.with_entities(ActivityLog.resource, func.count(ActivityLog.id))
        .group_by(ActivityLog.resource)
        .all()
    )
    return {
        "total": sum(by_action.values()),
        "by_action": {action.value: count for action, count in by_action.items()},
        "by_resource": by_resource,
    }
