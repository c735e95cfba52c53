from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal, InvalidOperation
from typing import Any

from .errors import ValidationError


# Maximum price: 9,999,999.99 (999,999,999 cents)
# This prevents database overflow issues and nonsensical prices
MAX_PRICE_CENTS = 999_999_999
MAX_LINE_QUANTITY = 100_000


def parse_int(
    value: Any,
    field_name: str,
    *,
    required: bool = True,
    minimum: int | None = None,
    maximum: int | None = None,
) -> int | None:
    """
    Strict integer coercion for JSON input.

    Rejects bools, floats, decimals-in-strings and scientific notation.
    """
    if value is None or (isinstance(value, str) and not value.strip()):
        if required:
            raise ValidationError(f"{field_name} is required", {"field": field_name})
        return None

    if isinstance(value, bool):
        raise ValidationError(f"{field_name} must be an integer", {"field": field_name})
    if isinstance(value, int):
        result = value
    elif isinstance(value, str):
        stripped = value.strip()
        # Reject scientific notation (e.g., "1e15", "1E10")
        if "e" in stripped.lower():
            raise ValidationError(
                f"{field_name} must be a plain integer (scientific notation not allowed)",
                {"field": field_name},
            )
        if "." in stripped:
            raise ValidationError(f"{field_name} must be an integer (no decimals)", {"field": field_name})
        try:
            result = int(stripped)
        except ValueError:
            raise ValidationError(f"{field_name} must be an integer", {"field": field_name})
    elif isinstance(value, float):
        raise ValidationError(f"{field_name} must be an integer, not a decimal", {"field": field_name})
    else:
        raise ValidationError(f"{field_name} must be an integer", {"field": field_name})

    if minimum is not None and result < minimum:
        raise ValidationError(f"{field_name} must be >= {minimum}", {"field": field_name, "value": result})
    if maximum is not None and result > maximum:
        raise ValidationError(f"{field_name} must be <= {maximum}", {"field": field_name, "value": result})
    return result


def parse_percent(value: Any, field_name: str) -> Decimal:
    if value is None or value == "":
        return Decimal("0")
    if isinstance(value, bool):
        raise ValidationError(f"{field_name} must be a number", {"field": field_name})
    try:
        result = Decimal(str(value))
    except InvalidOperation:
        raise ValidationError(f"{field_name} must be a number", {"field": field_name})
    if not result.is_finite() or result < 0 or result > 100:
        raise ValidationError(f"{field_name} must be between 0 and 100", {"field": field_name})
    # Stored as NUMERIC(5, 2)
    if result.as_tuple().exponent < -2:
        raise ValidationError(
            f"{field_name} allows at most 2 decimal places", {"field": field_name, "value": str(value)}
        )
    return result


def parse_text(value: Any, field_name: str, *, required: bool = False, max_length: int | None = None) -> str | None:
    if value is None:
        text = ""
    else:
        text = str(value).strip()
    if not text:
        if required:
            raise ValidationError(f"{field_name} cannot be blank", {"field": field_name})
        return None
    if max_length is not None and len(text) > max_length:
        raise ValidationError(f"{field_name} exceeds max length {max_length}", {"field": field_name})
    return text


def _require_mapping(payload: Any) -> dict:
    if payload is None:
        return {}
    if not isinstance(payload, dict):
        raise ValidationError("Invalid JSON payload")
    return payload


def _require_items(payload: dict) -> list:
    items = payload.get("items")
    if not items:
        raise ValidationError("items cannot be empty", {"field": "items"})
    if not isinstance(items, list):
        raise ValidationError("items must be a list", {"field": "items"})
    for raw in items:
        if not isinstance(raw, dict):
            raise ValidationError("each item must be an object", {"field": "items"})
    return items


# =============================================================================
# Workflow inputs
# =============================================================================

@dataclass(frozen=True)
class SaleItemRequest:
    variant_id: int
    quantity: int
    price_cents: int | None = None
    substitute_from_variant_id: int | None = None

    @property
    def stock_variant_id(self) -> int:
        """Variant the stock is checked and deducted against."""
        return self.substitute_from_variant_id or self.variant_id

    @classmethod
    def from_payload(cls, raw: dict) -> "SaleItemRequest":
        return cls(
            variant_id=parse_int(raw.get("variant_id"), "variant_id", minimum=1),
            quantity=parse_int(raw.get("quantity"), "quantity", minimum=1, maximum=MAX_LINE_QUANTITY),
            price_cents=parse_int(raw.get("price_cents"), "price_cents", required=False, minimum=0, maximum=MAX_PRICE_CENTS),
            substitute_from_variant_id=parse_int(
                raw.get("substitute_from_variant_id"), "substitute_from_variant_id", required=False, minimum=1
            ),
        )


@dataclass(frozen=True)
class SaleRequest:
    items: list[SaleItemRequest]
    customer_id: int | None = None
    customer_name: str | None = None
    customer_phone: str | None = None
    discount_cents: int = 0
    tax_percent: Decimal = Decimal("0")
    payment_method: str | None = None
    notes: str | None = None

    def __post_init__(self):
        if not self.items:
            raise ValidationError("items cannot be empty", {"field": "items"})
        if self.discount_cents < 0:
            raise ValidationError("discount_cents must be >= 0", {"field": "discount_cents"})

    @classmethod
    def from_payload(cls, payload: Any) -> "SaleRequest":
        payload = _require_mapping(payload)
        items = [SaleItemRequest.from_payload(raw) for raw in _require_items(payload)]
        return cls(
            items=items,
            customer_id=parse_int(payload.get("customer_id"), "customer_id", required=False, minimum=1),
            customer_name=parse_text(payload.get("customer_name"), "customer_name", max_length=255),
            customer_phone=parse_text(payload.get("customer_phone"), "customer_phone", max_length=32),
            discount_cents=parse_int(payload.get("discount_cents"), "discount_cents", required=False, minimum=0) or 0,
            tax_percent=parse_percent(payload.get("tax_percent"), "tax_percent"),
            payment_method=parse_text(payload.get("payment_method"), "payment_method", max_length=32),
            notes=parse_text(payload.get("notes"), "notes"),
        )


@dataclass(frozen=True)
class ProductionItemRequest:
    variant_id: int
    quantity: int
    unit_price_cents: int | None = None

    @classmethod
    def from_payload(cls, raw: dict) -> "ProductionItemRequest":
        return cls(
            variant_id=parse_int(raw.get("variant_id"), "variant_id", minimum=1),
            quantity=parse_int(raw.get("quantity"), "quantity", minimum=1, maximum=MAX_LINE_QUANTITY),
            unit_price_cents=parse_int(
                raw.get("unit_price_cents"), "unit_price_cents", required=False, minimum=0, maximum=MAX_PRICE_CENTS
            ),
        )


@dataclass(frozen=True)
class ProductionOrderRequest:
    items: list[ProductionItemRequest]
    notes: str | None = None
    supplier_id: int | None = None

    def __post_init__(self):
        if not self.items:
            raise ValidationError("items cannot be empty", {"field": "items"})

    @classmethod
    def from_payload(cls, payload: Any) -> "ProductionOrderRequest":
        payload = _require_mapping(payload)
        items = [ProductionItemRequest.from_payload(raw) for raw in _require_items(payload)]
        return cls(
            items=items,
            notes=parse_text(payload.get("notes"), "notes"),
            supplier_id=parse_int(payload.get("supplier_id"), "supplier_id", required=False, minimum=1),
        )


@dataclass(frozen=True)
class StockAdjustmentRequest:
    variant_id: int
    new_stock: int
    reason: str

    @classmethod
    def from_payload(cls, payload: Any) -> "StockAdjustmentRequest":
        payload = _require_mapping(payload)
        return cls(
            variant_id=parse_int(payload.get("variant_id"), "variant_id", minimum=1),
            new_stock=parse_int(payload.get("new_stock"), "new_stock", minimum=0),
            reason=parse_text(payload.get("reason"), "reason", required=True, max_length=255),
        )


# =============================================================================
# Catalog and party inputs
# =============================================================================

@dataclass(frozen=True)
class VariantRequest:
    size: str | None = None
    color: str | None = None
    stock: int = 0
    min_stock: int = 0
    price_cents: int | None = None
    barcode: str | None = None

    @classmethod
    def from_payload(cls, raw: Any) -> "VariantRequest":
        raw = _require_mapping(raw)
        return cls(
            size=parse_text(raw.get("size"), "size", max_length=32),
            color=parse_text(raw.get("color"), "color", max_length=64),
            stock=parse_int(raw.get("stock"), "stock", required=False, minimum=0) or 0,
            min_stock=parse_int(raw.get("min_stock"), "min_stock", required=False, minimum=0) or 0,
            price_cents=parse_int(raw.get("price_cents"), "price_cents", required=False, minimum=0, maximum=MAX_PRICE_CENTS),
            barcode=parse_text(raw.get("barcode"), "barcode", max_length=128),
        )


@dataclass(frozen=True)
class ProductRequest:
    sku: str
    name: str
    description: str | None = None
    category: str | None = None
    brand: str | None = None
    cost_price_cents: int = 0
    selling_price_cents: int = 0
    variants: list[VariantRequest] = field(default_factory=list)

    @classmethod
    def from_payload(cls, payload: Any) -> "ProductRequest":
        payload = _require_mapping(payload)
        variants = payload.get("variants") or []
        if not isinstance(variants, list):
            raise ValidationError("variants must be a list", {"field": "variants"})
        return cls(
            sku=parse_text(payload.get("sku"), "sku", required=True, max_length=64),
            name=parse_text(payload.get("name"), "name", required=True, max_length=255),
            description=parse_text(payload.get("description"), "description"),
            category=parse_text(payload.get("category"), "category", max_length=120),
            brand=parse_text(payload.get("brand"), "brand", max_length=120),
            cost_price_cents=parse_int(
                payload.get("cost_price_cents"), "cost_price_cents", required=False, minimum=0, maximum=MAX_PRICE_CENTS
            ) or 0,
            selling_price_cents=parse_int(
                payload.get("selling_price_cents"), "selling_price_cents", required=False, minimum=0, maximum=MAX_PRICE_CENTS
            ) or 0,
            variants=[VariantRequest.from_payload(v) for v in variants],
        )


@dataclass(frozen=True)
class PartyRequest:
    name: str
    contact: str | None = None
    phone: str | None = None
    email: str | None = None
    address: str | None = None

    @classmethod
    def from_payload(cls, payload: Any) -> "PartyRequest":
        payload = _require_mapping(payload)
        return cls(
            name=parse_text(payload.get("name"), "name", required=True, max_length=255),
            contact=parse_text(payload.get("contact"), "contact", max_length=255),
            phone=parse_text(payload.get("phone"), "phone", max_length=32),
            email=parse_text(payload.get("email"), "email", max_length=255),
            address=parse_text(payload.get("address"), "address"),
        )
