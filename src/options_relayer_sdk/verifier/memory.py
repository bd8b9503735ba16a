"""In-process option verifier for tests and local harnesses.

Mirrors the on-chain contract's view: a digest is available until it is
consumed by a mint.
"""

import logging
from typing import Dict, Iterable, Optional, Set, Tuple

from ..errors import DigestCollision
from ..orders.hashing import compute_option_digest
from ..orders.types import EIP712Domain, OptionParams

logger = logging.getLogger(__name__)


class InMemoryOptionVerifier:
    """Consumed-digest set plus the token metadata permit signing reads."""

    def __init__(
        self,
        domain: EIP712Domain,
        used: Optional[Iterable[bytes]] = None,
        token_names: Optional[Dict[str, str]] = None,
        permit_nonces: Optional[Dict[Tuple[str, str], int]] = None,
    ):
        self.domain = domain
        self.used: Set[bytes] = set(used or ())
        self.token_names = {k.lower(): v for k, v in (token_names or {}).items()}
        self.permit_nonces = {
            (token.lower(), owner.lower()): nonce
            for (token, owner), nonce in (permit_nonces or {}).items()
        }
        self.calls = 0

    async def generate_option_hash(
        self,
        underlying_asset: str,
        strike_asset: str,
        maker: str,
        strike_price: int,
        expiry: int,
        amount: int,
        salt: int,
    ) -> bytes:
        params = OptionParams(
            underlying_asset=underlying_asset,
            strike_asset=strike_asset,
            strike_price=strike_price,
            option_amount=amount,
            premium=0,
            expiry=expiry,
        )
        return compute_option_digest(self.domain, maker, params, salt)

    async def is_option_hash_available(
        self,
        underlying_asset: str,
        strike_asset: str,
        maker: str,
        strike_price: int,
        expiry: int,
        amount: int,
        salt: int,
    ) -> bool:
        self.calls += 1
        digest = await self.generate_option_hash(
            underlying_asset, strike_asset, maker, strike_price, expiry, amount, salt
        )
        return digest not in self.used

    def mark_used(self, digest: bytes) -> None:
        self.used.add(digest)

    def consume(self, maker: str, params: OptionParams, salt: int) -> bytes:
        """Consume the digest as a mint would.

        Raises:
            DigestCollision: If the digest was already consumed
        """
        digest = compute_option_digest(self.domain, maker, params, salt)
        if digest in self.used:
            raise DigestCollision(digest, salt)
        self.used.add(digest)
        logger.debug("Consumed option digest 0x%s", digest.hex())
        return digest

    async def get_token_name(self, token_address: str) -> str:
        return self.token_names[token_address.lower()]

    async def get_permit_nonce(self, token_address: str, owner: str) -> int:
        return self.permit_nonces.get((token_address.lower(), owner.lower()), 0)
