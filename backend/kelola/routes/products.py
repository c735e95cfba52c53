# Overview: Flask API routes for products, variants and barcode lookup.

from flask import Blueprint, request, jsonify, g, current_app

from ..errors import KelolaError, ValidationError
from ..models import UserRole
from ..services import catalog_service
from ..validation import ProductRequest, VariantRequest, parse_int
from ..decorators import require_auth, require_role


products_bp = Blueprint("products", __name__, url_prefix="/api")

MANAGERS = (UserRole.OWNER, UserRole.ADMIN)


@products_bp.post("/products")
@require_auth
@require_role(*MANAGERS)
def create_product_route():
    """Create a product with its variants. Variant stock becomes initial_stock."""
    try:
        product_request = ProductRequest.from_payload(request.get_json(silent=True))
        product = catalog_service.create_product(product_request, actor_id=g.current_user.id)
        return jsonify({"product": product.to_dict(include_variants=True)}), 201

    except KelolaError as e:
        return jsonify(e.to_dict()), e.http_status
    except Exception:
        current_app.logger.exception("Failed to create product")
        return jsonify({"error": "Internal server error"}), 500


@products_bp.get("/products")
@require_auth
def list_products_route():
    result = catalog_service.list_products(
        search=request.args.get("search") or None,
        include_inactive=request.args.get("include_inactive", "false").lower() == "true",
        page=max(request.args.get("page", 1, type=int), 1),
        limit=min(max(request.args.get("limit", 20, type=int), 1), 100),
    )
    return jsonify({
        "products": [p.to_dict() for p in result["products"]],
        "pagination": result["pagination"],
    }), 200


@products_bp.get("/products/<int:product_id>")
@require_auth
def get_product_route(product_id: int):
    try:
        product = catalog_service.get_product(product_id)
        include_inactive = request.args.get("include_inactive", "false").lower() == "true"
        data = product.to_dict()
        data["variants"] = [
            v.to_dict()
            for v in catalog_service.list_variants(product_id=product.id, include_inactive=include_inactive)
        ]
        return jsonify({"product": data}), 200
    except KelolaError as e:
        return jsonify(e.to_dict()), e.http_status


@products_bp.post("/products/<int:product_id>/variants")
@require_auth
@require_role(*MANAGERS)
def add_variant_route(product_id: int):
    try:
        variant_request = VariantRequest.from_payload(request.get_json(silent=True))
        variant = catalog_service.add_variant(product_id, variant_request, actor_id=g.current_user.id)
        return jsonify({"variant": variant.to_dict()}), 201
    except KelolaError as e:
        return jsonify(e.to_dict()), e.http_status


@products_bp.put("/products/<int:product_id>/variants/<int:variant_id>")
@require_auth
@require_role(*MANAGERS)
def update_variant_route(product_id: int, variant_id: int):
    """Body: {min_stock}. Only the reorder threshold is editable; stock moves through the ledger."""
    try:
        payload = request.get_json(silent=True) or {}
        if not isinstance(payload, dict):
            raise ValidationError("Invalid JSON payload")
        min_stock = parse_int(payload.get("min_stock"), "min_stock", minimum=0)
        variant = catalog_service.update_variant_min_stock(
            product_id, variant_id, min_stock, actor_id=g.current_user.id
        )
        return jsonify({"variant": variant.to_dict()}), 200
    except KelolaError as e:
        return jsonify(e.to_dict()), e.http_status


@products_bp.patch("/products/<int:product_id>/variants/<int:variant_id>/deactivate")
@require_auth
@require_role(*MANAGERS)
def deactivate_variant_route(product_id: int, variant_id: int):
    try:
        variant = catalog_service.deactivate_variant(product_id, variant_id, actor_id=g.current_user.id)
        return jsonify({"variant": variant.to_dict()}), 200
    except KelolaError as e:
        return jsonify(e.to_dict()), e.http_status


@products_bp.get("/barcode/scan")
@require_auth
def scan_barcode_route():
    """?barcode=... -> the variant carrying it (inactive variants are not sellable)."""
    try:
        barcode = (request.args.get("barcode") or "").strip()
        if not barcode:
            raise ValidationError("barcode is required", {"field": "barcode"})

        variant = catalog_service.find_variant_by_barcode(barcode)
        if variant is None or not variant.is_active:
            return jsonify({"error": "NOT_FOUND", "message": "Barcode not found", "details": {"barcode": barcode}}), 404
        return jsonify({"variant": variant.to_dict()}), 200
    except KelolaError as e:
        return jsonify(e.to_dict()), e.http_status
