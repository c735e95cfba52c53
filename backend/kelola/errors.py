# Overview: Error taxonomy shared by services and routes.

"""
Every error carries a stable machine-readable ``code`` and a ``details`` dict
with the numbers a caller needs (current stock, requested quantity, status).
Routes translate ``http_status`` directly; services never format UI text.
"""

from __future__ import annotations


class KelolaError(Exception):
    """Base class for domain errors."""
    code = "ERROR"
    http_status = 400

    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message)
        self.details = details or {}

    def to_dict(self) -> dict:
        return {"error": self.code, "message": str(self), "details": self.details}


class ValidationError(KelolaError, ValueError):
    """400-level input problem."""
    code = "VALIDATION_ERROR"
    http_status = 400


class NotFoundError(KelolaError):
    code = "NOT_FOUND"
    http_status = 404


class VariantNotFoundError(NotFoundError):
    code = "VARIANT_NOT_FOUND"

    def __init__(self, variant_id: int):
        super().__init__(f"Variant {variant_id} not found", {"variant_id": variant_id})


class ProductNotFoundError(NotFoundError):
    code = "PRODUCT_NOT_FOUND"

    def __init__(self, product_id: int):
        super().__init__(f"Product {product_id} not found", {"product_id": product_id})


class TransactionNotFoundError(NotFoundError):
    code = "TRANSACTION_NOT_FOUND"

    def __init__(self, transaction_id: int):
        super().__init__(
            f"Transaction {transaction_id} not found",
            {"transaction_id": transaction_id},
        )


class CustomerNotFoundError(NotFoundError):
    code = "CUSTOMER_NOT_FOUND"

    def __init__(self, supplier_id: int):
        super().__init__(f"Customer {supplier_id} not found", {"supplier_id": supplier_id})


class ConflictError(KelolaError):
    """409-level business rule conflict."""
    code = "CONFLICT"
    http_status = 409


class InsufficientStockError(ConflictError):
    code = "INSUFFICIENT_STOCK"

    def __init__(self, variant_id: int, available: int, requested: int):
        super().__init__(
            f"Insufficient stock for variant {variant_id}",
            {"variant_id": variant_id, "available": available, "requested": requested},
        )
        self.variant_id = variant_id
        self.available = available
        self.requested = requested


class NoChangeRequestedError(ConflictError):
    code = "NO_CHANGE_REQUESTED"

    def __init__(self, variant_id: int, stock: int):
        super().__init__(
            f"Variant {variant_id} already has stock {stock}",
            {"variant_id": variant_id, "current_stock": stock},
        )


class AlreadyCompletedError(ConflictError):
    code = "ALREADY_COMPLETED"

    def __init__(self, transaction_id: int):
        super().__init__(
            f"Transaction {transaction_id} is already completed",
            {"transaction_id": transaction_id, "status": "COMPLETED"},
        )


class AlreadyCancelledError(ConflictError):
    code = "ALREADY_CANCELLED"

    def __init__(self, transaction_id: int):
        super().__init__(
            f"Transaction {transaction_id} is already cancelled",
            {"transaction_id": transaction_id, "status": "CANCELLED"},
        )


class OrderNotEditableError(ConflictError):
    code = "ORDER_NOT_EDITABLE"

    def __init__(self, transaction_id: int, status: str):
        super().__init__(
            f"Transaction {transaction_id} with status {status} can no longer be changed",
            {"transaction_id": transaction_id, "status": status},
        )


class ImmutableRecordError(ConflictError):
    code = "IMMUTABLE_RECORD"


class ConcurrentModificationError(KelolaError):
    """Write conflict that persisted through every retry attempt."""
    code = "CONCURRENT_MODIFICATION"
    http_status = 503
