"""Salt Generation for option signatures.

Derives a pseudo-unique 32-bit salt from:
- The maker and the option parameters (cross-maker and cross-option separation)
- A millisecond timestamp and a random draw (same-option separation)

A salt is not guaranteed unique; the hash manager checks the resulting digest
against the verifier before it is used.
"""

import secrets
import time
from typing import Callable, List, Optional

from eth_abi import encode
from eth_utils import keccak

from .codec import canonical_address
from .types import OptionParams

SALT_BYTES = 4
SALT_MAX = 2 ** (8 * SALT_BYTES)

# Upper bound of the random input mixed into each salt
RANDOM_BOUND = 1_000_000


def _now_millis() -> int:
    return int(time.time() * 1000)


def _random_int() -> int:
    return secrets.randbelow(RANDOM_BOUND)


class SaltGenerator:
    """Salt source with injectable clock and randomness."""

    def __init__(
        self,
        clock: Optional[Callable[[], int]] = None,
        rng: Optional[Callable[[], int]] = None,
    ):
        """Initialize the generator.

        Args:
            clock: Returns the current time in milliseconds
            rng: Returns a random integer in [0, 1_000_000)
        """
        self._clock = clock or _now_millis
        self._rng = rng or _random_int

    def generate(self, maker: str, params: OptionParams, timestamp_offset: int = 0) -> int:
        """Generate a salt in [0, 2^32).

        Args:
            maker: Maker address
            params: Option parameters
            timestamp_offset: Added to the clock reading

        Returns:
            Integer salt

        Raises:
            InvalidAddressFormat: If any address is malformed
        """
        encoded = encode(
            ["address", "address", "address", "uint256", "uint256", "uint256", "uint256", "uint256"],
            [
                canonical_address(maker, "maker"),
                canonical_address(params.underlying_asset, "underlying_asset"),
                canonical_address(params.strike_asset, "strike_asset"),
                params.strike_price,
                params.expiry,
                params.option_amount,
                self._clock() + timestamp_offset,
                self._rng(),
            ],
        )
        return int.from_bytes(keccak(encoded)[:SALT_BYTES], "big")

    def generate_multiple(self, maker: str, params: OptionParams, count: int) -> List[int]:
        """Generate ``count`` salts with varied timestamp and randomness.

        Salts are not deduplicated against each other or earlier calls.
        """
        if count < 0:
            raise ValueError(f"Invalid count: {count}")
        return [self.generate(maker, params, timestamp_offset=i) for i in range(count)]


_default_generator = SaltGenerator()


def generate_salt(maker: str, params: OptionParams) -> int:
    """Generate a salt for an option signature."""
    return _default_generator.generate(maker, params)


def generate_multiple(maker: str, params: OptionParams, count: int) -> List[int]:
    """Generate ``count`` salts for batch order creation."""
    return _default_generator.generate_multiple(maker, params, count)
