# Overview: Flask API routes for sales; parses input and returns JSON responses.

# backend/kelola/routes/sales.py
"""Sales API routes"""

from flask import Blueprint, request, jsonify, g, current_app

from ..errors import KelolaError, ValidationError
from ..services import sales_service
from ..time_utils import parse_iso_datetime
from ..validation import SaleRequest
from ..decorators import require_auth


sales_bp = Blueprint("sales", __name__, url_prefix="/api/sales")


@sales_bp.post("")
@require_auth
def create_sale_route():
    """
    Post a completed sale.

    Body: items[{variant_id, quantity, price_cents?, substitute_from_variant_id?}],
    customer_id or customer_name/customer_phone, discount_cents, tax_percent,
    payment_method, notes.
    """
    try:
        sale_request = SaleRequest.from_payload(request.get_json(silent=True))
        sale = sales_service.create_sale(sale_request, actor_id=g.current_user.id)
        return jsonify({"sale": sale.to_dict()}), 201

    except KelolaError as e:
        return jsonify(e.to_dict()), e.http_status
    except Exception:
        current_app.logger.exception("Failed to create sale")
        return jsonify({"error": "Internal server error"}), 500


@sales_bp.get("")
@require_auth
def list_sales_route():
    try:
        try:
            start = parse_iso_datetime(request.args.get("start"))
            end = parse_iso_datetime(request.args.get("end"))
        except ValueError:
            raise ValidationError("start/end must be ISO-8601 datetimes")

        result = sales_service.list_sales(
            page=max(request.args.get("page", 1, type=int), 1),
            limit=min(max(request.args.get("limit", 10, type=int), 1), 100),
            start=start,
            end=end,
        )
        return jsonify({
            "sales": [s.to_dict(include_items=False) for s in result["sales"]],
            "pagination": result["pagination"],
        }), 200

    except KelolaError as e:
        return jsonify(e.to_dict()), e.http_status


@sales_bp.get("/<int:sale_id>")
@require_auth
def get_sale_route(sale_id: int):
    try:
        sale = sales_service.get_sale(sale_id)
        return jsonify({"sale": sale.to_dict()}), 200
    except KelolaError as e:
        return jsonify(e.to_dict()), e.http_status
