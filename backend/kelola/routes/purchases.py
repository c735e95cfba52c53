# Overview: Flask API routes for production (purchase) orders.

# backend/kelola/routes/purchases.py
"""
Production order routes.

Creating or editing an order never changes stock; only
PATCH /<id>/complete adds the ordered quantities.
"""

from flask import Blueprint, request, jsonify, g, current_app

from ..errors import KelolaError, ValidationError
from ..models import TransactionStatus, UserRole
from ..services import production_service
from ..validation import ProductionOrderRequest
from ..decorators import require_auth, require_role


purchases_bp = Blueprint("purchases", __name__, url_prefix="/api/purchases")

MANAGERS = (UserRole.OWNER, UserRole.ADMIN)


@purchases_bp.post("")
@require_auth
@require_role(*MANAGERS)
def create_purchase_route():
    try:
        order_request = ProductionOrderRequest.from_payload(request.get_json(silent=True))
        order = production_service.create_production_order(order_request, actor_id=g.current_user.id)
        return jsonify({"order": order.to_dict()}), 201

    except KelolaError as e:
        return jsonify(e.to_dict()), e.http_status
    except Exception:
        current_app.logger.exception("Failed to create production order")
        return jsonify({"error": "Internal server error"}), 500


@purchases_bp.get("")
@require_auth
def list_purchases_route():
    try:
        status_raw = request.args.get("status")
        status = None
        if status_raw:
            try:
                status = TransactionStatus(status_raw.upper())
            except ValueError:
                raise ValidationError("unknown status", {"status": status_raw})

        result = production_service.list_production_orders(
            status=status,
            page=max(request.args.get("page", 1, type=int), 1),
            limit=min(max(request.args.get("limit", 10, type=int), 1), 100),
        )
        return jsonify({
            "orders": [o.to_dict() for o in result["orders"]],
            "pagination": result["pagination"],
            "stats": result["stats"],
        }), 200

    except KelolaError as e:
        return jsonify(e.to_dict()), e.http_status


@purchases_bp.get("/<int:order_id>")
@require_auth
def get_purchase_route(order_id: int):
    try:
        order = production_service.get_production_order(order_id)
        return jsonify({"order": order.to_dict()}), 200
    except KelolaError as e:
        return jsonify(e.to_dict()), e.http_status


@purchases_bp.put("/<int:order_id>")
@require_auth
@require_role(*MANAGERS)
def update_purchase_route(order_id: int):
    """Replace the item set of a PENDING order."""
    try:
        order_request = ProductionOrderRequest.from_payload(request.get_json(silent=True))
        order = production_service.update_production_order(
            order_id, order_request, actor_id=g.current_user.id
        )
        return jsonify({"order": order.to_dict()}), 200

    except KelolaError as e:
        return jsonify(e.to_dict()), e.http_status
    except Exception:
        current_app.logger.exception("Failed to update production order %s", order_id)
        return jsonify({"error": "Internal server error"}), 500


@purchases_bp.delete("/<int:order_id>")
@require_auth
@require_role(*MANAGERS)
def delete_purchase_route(order_id: int):
    try:
        production_service.delete_production_order(order_id, actor_id=g.current_user.id)
        return jsonify({"deleted": True, "id": order_id}), 200
    except KelolaError as e:
        return jsonify(e.to_dict()), e.http_status


@purchases_bp.patch("/<int:order_id>/complete")
@require_auth
@require_role(*MANAGERS)
def complete_purchase_route(order_id: int):
    """Receive the order into stock. A second call returns 409 ALREADY_COMPLETED."""
    try:
        order = production_service.complete_production_order(order_id, actor_id=g.current_user.id)
        return jsonify({"order": order.to_dict()}), 200

    except KelolaError as e:
        return jsonify(e.to_dict()), e.http_status
    except Exception:
        current_app.logger.exception("Failed to complete production order %s", order_id)
        return jsonify({"error": "Internal server error"}), 500


@purchases_bp.patch("/<int:order_id>/cancel")
@require_auth
@require_role(*MANAGERS)
def cancel_purchase_route(order_id: int):
    try:
        order = production_service.cancel_production_order(order_id, actor_id=g.current_user.id)
        return jsonify({"order": order.to_dict()}), 200
    except KelolaError as e:
        return jsonify(e.to_dict()), e.http_status
