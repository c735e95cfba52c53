# Overview: Flask API routes for customers and suppliers.

"""
Customers and suppliers share one table; the two blueprints are views onto
the same records.
"""

from flask import Blueprint, request, jsonify, g

from ..errors import CustomerNotFoundError, KelolaError
from ..services import party_service
from ..validation import PartyRequest
from ..decorators import require_auth


customers_bp = Blueprint("customers", __name__, url_prefix="/api/customers")
suppliers_bp = Blueprint("suppliers", __name__, url_prefix="/api/suppliers")


def _list_parties():
    result = party_service.list_parties(
        search=request.args.get("search") or None,
        include_inactive=request.args.get("include_inactive", "false").lower() == "true",
        page=max(request.args.get("page", 1, type=int), 1),
        limit=min(max(request.args.get("limit", 20, type=int), 1), 100),
    )
    return jsonify({
        "parties": [p.to_dict() for p in result["parties"]],
        "pagination": result["pagination"],
    }), 200


def _create_party():
    try:
        party_request = PartyRequest.from_payload(request.get_json(silent=True))
        party = party_service.create_party(party_request, actor_id=g.current_user.id)
        return jsonify({"party": party.to_dict()}), 201
    except KelolaError as e:
        return jsonify(e.to_dict()), e.http_status


def _get_party(party_id: int, *, with_stats: bool = False):
    try:
        party = party_service.get_party(party_id)
        if not party.is_active:
            raise CustomerNotFoundError(party_id)
        body = {"party": party.to_dict()}
        if with_stats:
            body["stats"] = party_service.customer_summary(party_id)
        return jsonify(body), 200
    except KelolaError as e:
        return jsonify(e.to_dict()), e.http_status


def _update_party(party_id: int):
    try:
        party_request = PartyRequest.from_payload(request.get_json(silent=True))
        party = party_service.update_party(party_id, party_request, actor_id=g.current_user.id)
        return jsonify({"party": party.to_dict()}), 200
    except KelolaError as e:
        return jsonify(e.to_dict()), e.http_status


def _deactivate_party(party_id: int):
    try:
        party = party_service.deactivate_party(party_id, actor_id=g.current_user.id)
        return jsonify({"party": party.to_dict()}), 200
    except KelolaError as e:
        return jsonify(e.to_dict()), e.http_status


@customers_bp.get("")
@require_auth
def list_customers_route():
    return _list_parties()


@customers_bp.post("")
@require_auth
def create_customer_route():
    return _create_party()


@suppliers_bp.get("")
@require_auth
def list_suppliers_route():
    return _list_parties()


@suppliers_bp.post("")
@require_auth
def create_supplier_route():
    return _create_party()


@customers_bp.get("/<int:party_id>")
@require_auth
def get_customer_route(party_id: int):
    """The customer with its purchase statistics."""
    return _get_party(party_id, with_stats=True)


@customers_bp.put("/<int:party_id>")
@require_auth
def update_customer_route(party_id: int):
    return _update_party(party_id)


@customers_bp.delete("/<int:party_id>")
@require_auth
def delete_customer_route(party_id: int):
    """Soft delete; past sales keep their customer."""
    return _deactivate_party(party_id)


@suppliers_bp.get("/<int:party_id>")
@require_auth
def get_supplier_route(party_id: int):
    return _get_party(party_id)


@suppliers_bp.put("/<int:party_id>")
@require_auth
def update_supplier_route(party_id: int):
    return _update_party(party_id)


@suppliers_bp.delete("/<int:party_id>")
@require_auth
def delete_supplier_route(party_id: int):
    return _deactivate_party(party_id)
