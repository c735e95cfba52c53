# backend/kelola/routes/inventory.py
"""
Inventory routes: stock overview, manual adjustment, movement history,
analytics and ledger reconciliation.

Manual adjustments and reconciliation are limited to owners and admins.
"""
from flask import Blueprint, request, jsonify, g, current_app

from ..errors import KelolaError, ValidationError
from ..models import StockMovementType, UserRole
from ..services import analytics_service, inventory_service, ledger_service
from ..validation import StockAdjustmentRequest, parse_int
from ..decorators import require_auth, require_role


inventory_bp = Blueprint("inventory", __name__, url_prefix="/api/inventory")


def _flag(name: str) -> bool:
    return request.args.get(name, "false").lower() in ("1", "true", "yes")


@inventory_bp.get("")
@require_auth
def inventory_overview_route():
    """Per-variant stock status. ?alerts_only=true keeps CRITICAL, LOW and OVERSTOCK rows."""
    try:
        result = analytics_service.get_inventory_overview(
            alerts_only=_flag("alerts_only"),
            include_inactive=_flag("include_inactive"),
        )
        return jsonify(result), 200
    except KelolaError as e:
        return jsonify(e.to_dict()), e.http_status


@inventory_bp.post("/adjust-stock")
@require_auth
@require_role(UserRole.OWNER, UserRole.ADMIN)
def adjust_stock_route():
    """
    Set a variant to a counted stock level.

    Body: {variant_id, new_stock, reason}. Same stock as now -> 409 NO_CHANGE_REQUESTED.
    """
    try:
        adjustment = StockAdjustmentRequest.from_payload(request.get_json(silent=True))
        change = inventory_service.adjust_stock(adjustment, actor_id=g.current_user.id)
        data = change.to_dict()
        data["difference"] = change.movement.stock_after - change.movement.stock_before
        return jsonify(data), 200

    except KelolaError as e:
        return jsonify(e.to_dict()), e.http_status
    except Exception:
        current_app.logger.exception("Failed to adjust stock")
        return jsonify({"error": "Internal server error"}), 500


@inventory_bp.get("/movements")
@require_auth
def list_movements_route():
    try:
        variant_id = parse_int(request.args.get("variant_id"), "variant_id", required=False, minimum=1)
        type_raw = request.args.get("type")
        movement_type = None
        if type_raw:
            try:
                movement_type = StockMovementType(type_raw.upper())
            except ValueError:
                raise ValidationError("unknown movement type", {"type": type_raw})

        result = ledger_service.list_stock_movements(
            variant_id=variant_id,
            movement_type=movement_type,
            page=max(request.args.get("page", 1, type=int), 1),
            limit=min(max(request.args.get("limit", 50, type=int), 1), 200),
        )
        return jsonify({
            "movements": [m.to_dict() for m in result["movements"]],
            "pagination": result["pagination"],
        }), 200

    except KelolaError as e:
        return jsonify(e.to_dict()), e.http_status


@inventory_bp.get("/analytics")
@require_auth
def inventory_analytics_route():
    """
    ?variant_id=N    -> days remaining for one variant
    ?type=low-stock  -> variants selling out within ?threshold days (default 14)
    otherwise        -> dashboard: the low-stock list, production
                        recommendations and active/critical/warning counts
    """
    try:
        days = parse_int(request.args.get("days"), "days", required=False, minimum=1) or 30
        variant_id = parse_int(request.args.get("variant_id"), "variant_id", required=False, minimum=1)
        if variant_id is not None:
            remaining = analytics_service.days_remaining(variant_id, days)
            return jsonify({
                "variant_id": variant_id,
                "days_remaining": remaining,
                "status": analytics_service.classify_days_remaining(remaining),
            }), 200

        threshold = parse_int(request.args.get("threshold"), "threshold", required=False, minimum=0)
        threshold = 14 if threshold is None else threshold
        if request.args.get("type") == "low-stock":
            low_stock = analytics_service.low_stock_by_days(threshold, days)
            return jsonify({"variants": low_stock, "total": len(low_stock)}), 200

        return jsonify(analytics_service.get_analytics_dashboard(threshold, days)), 200

    except KelolaError as e:
        return jsonify(e.to_dict()), e.http_status


@inventory_bp.get("/reconcile")
@require_auth
@require_role(UserRole.OWNER, UserRole.ADMIN)
def reconcile_route():
    """Variants whose stock disagrees with initial_stock + movements."""
    try:
        variant_id = parse_int(request.args.get("variant_id"), "variant_id", required=False, minimum=1)
        if variant_id is not None:
            return jsonify(ledger_service.reconcile_variant(variant_id)), 200
        drifted = ledger_service.reconcile_all()
        return jsonify({"drifted": drifted, "count": len(drifted)}), 200
    except KelolaError as e:
        return jsonify(e.to_dict()), e.http_status
