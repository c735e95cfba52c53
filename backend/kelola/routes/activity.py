# Overview: Flask API routes for the activity log.

from flask import Blueprint, request, jsonify

from ..errors import KelolaError, ValidationError
from ..models import ActivityAction, UserRole
from ..services import activity_service
from ..time_utils import parse_iso_datetime
from ..validation import parse_int
from ..decorators import require_auth, require_role


activity_bp = Blueprint("activity", __name__, url_prefix="/api/activity-logs")


@activity_bp.get("")
@require_auth
@require_role(UserRole.OWNER, UserRole.ADMIN)
def list_activity_route():
    """Filters: user_id, action, resource, start, end. ?stats=true adds counts."""
    try:
        action_raw = request.args.get("action")
        action = None
        if action_raw:
            try:
                action = ActivityAction(action_raw.upper())
            except ValueError:
                raise ValidationError("unknown action", {"action": action_raw})
        try:
            start = parse_iso_datetime(request.args.get("start"))
            end = parse_iso_datetime(request.args.get("end"))
        except ValueError:
            raise ValidationError("start/end must be ISO-8601 datetimes")

        result = activity_service.list_activity(
            limit=min(max(request.args.get("limit", 50, type=int), 1), 200),
            offset=max(request.args.get("offset", 0, type=int), 0),
            user_id=parse_int(request.args.get("user_id"), "user_id", required=False, minimum=1),
            action=action,
            resource=request.args.get("resource") or None,
            start=start,
            end=end,
        )
        data = {
            "logs": [entry.to_dict() for entry in result["logs"]],
            "total": result["total"],
            "limit": result["limit"],
            "offset": result["offset"],
        }
        if request.args.get("stats", "false").lower() == "true":
            data["stats"] = activity_service.activity_stats(start=start, end=end)
        return jsonify(data), 200

    except KelolaError as e:
        return jsonify(e.to_dict()), e.http_status
