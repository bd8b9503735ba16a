"""Order persistence and lifecycle."""

from .memory import InMemoryOrderStore
from .types import OrderFilters, OrderStatus, OrderStore, StoredOrder

__all__ = [
    "InMemoryOrderStore",
    "OrderFilters",
    "OrderStatus",
    "OrderStore",
    "StoredOrder",
]
