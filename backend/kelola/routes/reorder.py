# Overview: Flask API routes for reorder suggestions.

from flask import Blueprint, request, jsonify, g, current_app

from ..errors import KelolaError, ValidationError
from ..models import UserRole
from ..services import analytics_service, production_service
from ..services.production_service import SuggestionSelection
from ..validation import parse_text
from ..decorators import require_auth, require_role


reorder_bp = Blueprint("reorder", __name__, url_prefix="/api/reorder-suggestions")


@reorder_bp.get("")
@require_auth
def list_suggestions_route():
    try:
        return jsonify(analytics_service.get_reorder_suggestions()), 200
    except KelolaError as e:
        return jsonify(e.to_dict()), e.http_status


@reorder_bp.post("")
@require_auth
@require_role(UserRole.OWNER, UserRole.ADMIN)
def create_order_from_suggestions_route():
    """
    Body: {"selected": [{variant_id, quantity}], "notes"?}

    Creates one PENDING production order priced at product cost.
    """
    try:
        payload = request.get_json(silent=True) or {}
        if not isinstance(payload, dict):
            raise ValidationError("Invalid JSON payload")
        selected_raw = payload.get("selected") or []
        if not isinstance(selected_raw, list):
            raise ValidationError("selected must be a list", {"field": "selected"})

        order = production_service.create_order_from_suggestions(
            [SuggestionSelection.from_payload(raw) for raw in selected_raw],
            notes=parse_text(payload.get("notes"), "notes"),
            actor_id=g.current_user.id,
        )
        return jsonify({
            "order": order.to_dict(),
            "summary": {
                "total_items": len(order.items),
                "total_cost_cents": order.total_amount_cents,
                "invoice_number": order.invoice_number,
            },
        }), 201

    except KelolaError as e:
        return jsonify(e.to_dict()), e.http_status
    except Exception:
        current_app.logger.exception("Failed to create production order from suggestions")
        return jsonify({"error": "Internal server error"}), 500
