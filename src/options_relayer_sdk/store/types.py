"""Stored order lifecycle types."""

from dataclasses import dataclass, replace
from enum import Enum
from typing import List, Optional, Protocol, TypedDict

from ..orders.types import CompleteOrder


class OrderStatus(str, Enum):
    OPEN = "open"
    FILLED = "filled"
    CANCELLED = "cancelled"
    EXPIRED = "expired"

    @property
    def is_terminal(self) -> bool:
        return self is not OrderStatus.OPEN


@dataclass(frozen=True)
class StoredOrder:
    """A complete order as persisted by the relayer."""

    order_hash: str
    """0x-prefixed EIP-712 hash of the LOP order"""

    complete_order: CompleteOrder
    status: OrderStatus
    created_at: float
    """Unix seconds"""

    updated_at: float

    @property
    def maker(self) -> str:
        return self.complete_order.maker

    @property
    def expiry(self) -> int:
        return self.complete_order.option_params.expiry

    def with_status(self, status: OrderStatus, updated_at: float) -> "StoredOrder":
        return replace(self, status=status, updated_at=updated_at)


class OrderFilters(TypedDict, total=False):
    """Listing filters. Address filters match case-insensitively."""

    status: OrderStatus
    maker: str
    maker_asset: str
    taker_asset: str
    limit: int
    """1-100. Default: 50"""


DEFAULT_LIST_LIMIT = 50
MAX_LIST_LIMIT = 100


class OrderStore(Protocol):
    """Persistence collaborator for complete orders."""

    async def insert(self, order_hash: str, complete_order: CompleteOrder) -> StoredOrder:
        ...

    async def get_by_hash(self, order_hash: str) -> Optional[StoredOrder]:
        ...

    async def update_status(self, order_hash: str, status: OrderStatus) -> StoredOrder:
        ...

    async def list(self, filters: Optional[OrderFilters] = None) -> List[StoredOrder]:
        ...

    async def clear(self) -> int:
        ...
