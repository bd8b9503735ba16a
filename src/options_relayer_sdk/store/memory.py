"""In-memory order store."""

import logging
import time
from typing import Callable, Dict, List, Optional

from ..errors import (
    InvalidParameter,
    InvalidStatusTransition,
    OrderAlreadyExists,
    OrderNotFound,
)
from ..orders.types import CompleteOrder
from .types import (
    DEFAULT_LIST_LIMIT,
    MAX_LIST_LIMIT,
    OrderFilters,
    OrderStatus,
    StoredOrder,
)

logger = logging.getLogger(__name__)


class InMemoryOrderStore:
    """Dict-backed ``OrderStore``.

    Open orders whose option expiry has passed are moved to ``expired`` when
    read. Records are only removed by ``clear()``.
    """

    def __init__(self, clock: Optional[Callable[[], float]] = None):
        self._orders: Dict[str, StoredOrder] = {}
        self._clock = clock or time.time

    def _key(self, order_hash: str) -> str:
        return order_hash.lower()

    def _refresh(self, stored: StoredOrder) -> StoredOrder:
        now = self._clock()
        if stored.status is OrderStatus.OPEN and stored.expiry <= now:
            stored = stored.with_status(OrderStatus.EXPIRED, now)
            self._orders[self._key(stored.order_hash)] = stored
            logger.info("Order %s expired", stored.order_hash)
        return stored

    async def insert(self, order_hash: str, complete_order: CompleteOrder) -> StoredOrder:
        """Store a new open order.

        Raises:
            OrderAlreadyExists: If the hash is already stored
        """
        key = self._key(order_hash)
        if key in self._orders:
            raise OrderAlreadyExists(order_hash)
        now = self._clock()
        stored = StoredOrder(
            order_hash=order_hash,
            complete_order=complete_order,
            status=OrderStatus.OPEN,
            created_at=now,
            updated_at=now,
        )
        self._orders[key] = stored
        logger.info("Stored order %s for maker %s", order_hash, complete_order.maker)
        return self._refresh(stored)

    async def get_by_hash(self, order_hash: str) -> Optional[StoredOrder]:
        stored = self._orders.get(self._key(order_hash))
        return self._refresh(stored) if stored else None

    async def update_status(self, order_hash: str, status: OrderStatus) -> StoredOrder:
        """Move an open order to a terminal status.

        Raises:
            OrderNotFound: If the hash is unknown
            InvalidStatusTransition: If the order is not open or status is open
        """
        status = OrderStatus(status)
        stored = await self.get_by_hash(order_hash)
        if stored is None:
            raise OrderNotFound(order_hash)
        if stored.status is not OrderStatus.OPEN or status is OrderStatus.OPEN:
            raise InvalidStatusTransition(
                stored.order_hash, stored.status.value, status.value
            )
        updated = stored.with_status(status, self._clock())
        self._orders[self._key(order_hash)] = updated
        logger.info("Order %s moved to %s", stored.order_hash, status.value)
        return updated

    async def list(self, filters: Optional[OrderFilters] = None) -> List[StoredOrder]:
        """Orders matching ``filters``, newest first.

        Raises:
            InvalidParameter: If limit is outside 1-100
        """
        filters = filters or {}
        limit = filters.get("limit", DEFAULT_LIST_LIMIT)
        if not 1 <= limit <= MAX_LIST_LIMIT:
            raise InvalidParameter("limit", f"must be between 1 and {MAX_LIST_LIMIT}")

        status = filters.get("status")
        maker = filters.get("maker", "").lower()
        maker_asset = filters.get("maker_asset", "").lower()
        taker_asset = filters.get("taker_asset", "").lower()

        results = []
        for stored in [self._refresh(s) for s in reversed(list(self._orders.values()))]:
            addresses = stored.complete_order.original_addresses
            if status is not None and stored.status is not OrderStatus(status):
                continue
            if maker and stored.maker.lower() != maker:
                continue
            if maker_asset and addresses.maker_asset.lower() != maker_asset:
                continue
            if taker_asset and addresses.taker_asset.lower() != taker_asset:
                continue
            results.append(stored)

        results.sort(key=lambda s: s.created_at, reverse=True)
        return results[:limit]

    async def clear(self) -> int:
        """Remove every order and return how many were removed."""
        count = len(self._orders)
        self._orders.clear()
        logger.info("Cleared %d orders", count)
        return count
