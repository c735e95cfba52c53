from .enums import (
    StockMovementType,
    MovementReason,
    TransactionType,
    TransactionStatus,
    UserRole,
    ActivityAction,
)
from .catalog import Product, Size, Color, ProductVariant
from .inventory import StockMovement
from .transactions import Transaction, TransactionItem
from .parties import Supplier
from .auth import User
from .activity import ActivityLog
from .documents import DocumentSequence

__all__ = [
    'StockMovementType', 'MovementReason', 'TransactionType', 'TransactionStatus',
    'UserRole', 'ActivityAction',
    'Product', 'Size', 'Color', 'ProductVariant',
    'StockMovement',
    'Transaction', 'TransactionItem',
    'Supplier',
    'User',
    'ActivityLog',
    'DocumentSequence',
]
