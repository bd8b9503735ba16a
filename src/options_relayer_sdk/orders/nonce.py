"""Sequential nonce manager (legacy uniqueness scheme).

Kept for makers still on the counter-based option struct. A nonce is
available until the per-maker counter moves past it.

Not safe for concurrent order preparation by the same maker: two callers
read the same "next" value. Callers must serialize nonce-consuming work per
maker; nothing here locks.
"""

import logging
from typing import Dict, Optional, Protocol

from ..errors import InvalidParameter
from .codec import canonical_address

logger = logging.getLogger(__name__)


class NonceStore(Protocol):
    """Monotonic per-maker counter (on-chain or local)."""

    async def get_counter(self, maker: str) -> int:
        ...

    async def set_counter(self, maker: str, value: int) -> None:
        ...


class InMemoryNonceStore:
    """Local counter store. Create one per harness; never share globally."""

    def __init__(self, initial: Optional[Dict[str, int]] = None):
        self._counters: Dict[str, int] = {
            maker.lower(): value for maker, value in (initial or {}).items()
        }

    async def get_counter(self, maker: str) -> int:
        return self._counters.get(maker.lower(), 0)

    async def set_counter(self, maker: str, value: int) -> None:
        self._counters[maker.lower()] = value


class NonceManager:
    """Reads and moves a maker's sequential nonce counter."""

    def __init__(self, store: NonceStore):
        self.store = store

    async def get_next_nonce(self, maker: str) -> int:
        """Nonce to sign the next order with (the counter value)."""
        return await self.store.get_counter(canonical_address(maker, "maker"))

    async def get_current_nonce(self, maker: str) -> Optional[int]:
        """Most recently consumed nonce, or None if the maker has none."""
        counter = await self.store.get_counter(canonical_address(maker, "maker"))
        return counter - 1 if counter > 0 else None

    async def is_nonce_available(self, maker: str, nonce: int) -> bool:
        """True while the counter has not moved past ``nonce``."""
        if nonce < 0:
            return False
        return nonce >= await self.store.get_counter(canonical_address(maker, "maker"))

    async def advance_nonce(self, maker: str, by: int = 1) -> int:
        """Consume ``by`` nonces and return the new next nonce.

        Raises:
            InvalidParameter: If by is not positive
        """
        if by <= 0:
            raise InvalidParameter("by", "must be greater than 0")
        maker = canonical_address(maker, "maker")
        counter = await self.store.get_counter(maker) + by
        await self.store.set_counter(maker, counter)
        logger.info("Advanced nonce for %s to %d", maker, counter)
        return counter

    async def reset_nonce(self, maker: str, nonce: int = 0) -> None:
        """Set the counter back to ``nonce``. For test harnesses and local chains.

        Raises:
            InvalidParameter: If nonce is negative
        """
        if nonce < 0:
            raise InvalidParameter("nonce", "must not be negative")
        maker = canonical_address(maker, "maker")
        await self.store.set_counter(maker, nonce)
        logger.info("Reset nonce for %s to %d", maker, nonce)
