"""Order hash manager: replay protection for option signatures.

Every option signature is bound to one digest over
``(maker, underlying, strike, strikePrice, expiry, amount, salt)``. The
verifier marks the digest used when the option is minted, so a salt is only
safe to sign with while its digest is still available.

Salts are random and re-checked per order rather than reserved, so any
number of orders for the same maker can be prepared concurrently.
"""

import asyncio
import logging
import time
from typing import Callable, List, Optional, Protocol

from ..errors import (
    DigestCollision,
    InvalidParameter,
    OptionsRelayerError,
    SaltExhaustion,
    VerifierUnavailable,
)
from ..verifier.base import OptionHashVerifier
from .codec import canonical_address
from .hashing import compute_option_digest
from .salt import SaltGenerator
from .types import EIP712Domain, OptionParams, OrderConfig, ValidationResult

logger = logging.getLogger(__name__)

DEFAULT_MAX_ATTEMPTS = 10
DEFAULT_TIMEOUT_SECONDS = 10.0
DEFAULT_RETRY_DELAY_SECONDS = 0.05


class SaltSource(Protocol):
    def generate(self, maker: str, params: OptionParams, timestamp_offset: int = 0) -> int:
        ...


class OrderHashManager:
    """Computes option digests and finds salts the verifier has not consumed."""

    def __init__(
        self,
        verifier: OptionHashVerifier,
        options_domain: EIP712Domain,
        salt_generator: Optional[SaltSource] = None,
        timeout: Optional[float] = DEFAULT_TIMEOUT_SECONDS,
        retry_delay: float = DEFAULT_RETRY_DELAY_SECONDS,
        clock: Optional[Callable[[], float]] = None,
    ):
        """Initialize the hash manager.

        Args:
            verifier: External verifier to query for digest availability
            options_domain: Option EIP-712 domain (``create_option_domain``)
            salt_generator: Salt source (default: ``SaltGenerator()``)
            timeout: Seconds before an availability check counts as unavailable
            retry_delay: Seconds to wait between salt attempts
            clock: Returns current Unix time in seconds (for expiry checks)
        """
        self.verifier = verifier
        self.options_domain = options_domain
        self.salt_generator = salt_generator or SaltGenerator()
        self.timeout = timeout
        self.retry_delay = retry_delay
        self._clock = clock or time.time

    def compute_digest(self, maker: str, params: OptionParams, salt: int) -> bytes:
        """EIP-712 digest of the option payload, as the verifier computes it."""
        return compute_option_digest(self.options_domain, maker, params, salt)

    async def is_available(self, maker: str, params: OptionParams, salt: int) -> bool:
        """Check whether the digest for ``salt`` is still unused on the verifier.

        Pure read; safe to retry.

        Raises:
            VerifierUnavailable: On timeout or transport failure
        """
        check = self.verifier.is_option_hash_available(
            params.underlying_asset,
            params.strike_asset,
            maker,
            params.strike_price,
            params.expiry,
            params.option_amount,
            salt,
        )
        try:
            if self.timeout is None:
                return bool(await check)
            return bool(await asyncio.wait_for(check, timeout=self.timeout))
        except asyncio.TimeoutError as e:
            logger.warning("Availability check timed out for maker %s salt %s", maker, salt)
            raise VerifierUnavailable(
                f"Availability check timed out after {self.timeout}s"
            ) from e

    async def ensure_available(self, maker: str, params: OptionParams, salt: int) -> bytes:
        """Return the digest for ``salt`` or raise if it was already consumed.

        Raises:
            DigestCollision: If the digest is already used
            VerifierUnavailable: On timeout or transport failure
        """
        digest = self.compute_digest(maker, params, salt)
        if not await self.is_available(maker, params, salt):
            raise DigestCollision(digest, salt)
        return digest

    async def find_available_salt(
        self,
        maker: str,
        params: OptionParams,
        max_attempts: int = DEFAULT_MAX_ATTEMPTS,
    ) -> int:
        """Generate salts until one has an unused digest.

        Args:
            maker: Maker address
            params: Option parameters (``params.salt`` is ignored)
            max_attempts: Attempt budget

        Returns:
            Salt whose digest the verifier reported as available

        Raises:
            SaltExhaustion: If every attempt collided
            VerifierUnavailable: On timeout or transport failure
        """
        for attempt in range(max_attempts):
            salt = self.salt_generator.generate(maker, params, timestamp_offset=attempt)
            if await self.is_available(maker, params, salt):
                logger.debug("Salt %s available for maker %s (attempt %d)", salt, maker, attempt + 1)
                return salt
            logger.warning(
                "Digest collision for maker %s salt %s (attempt %d/%d)",
                maker, salt, attempt + 1, max_attempts,
            )
            if self.retry_delay and attempt + 1 < max_attempts:
                await asyncio.sleep(self.retry_delay)
        raise SaltExhaustion(max_attempts)

    def check_parameters(
        self, maker: str, params: OptionParams, salt: int
    ) -> Optional[OptionsRelayerError]:
        """First local precondition failure, without contacting the verifier."""
        for field, value in (
            ("maker", maker),
            ("underlying_asset", params.underlying_asset),
            ("strike_asset", params.strike_asset),
        ):
            try:
                canonical_address(value, field)
            except OptionsRelayerError as e:
                return e
        if params.strike_price <= 0:
            return InvalidParameter("strike_price", "must be greater than 0")
        if params.expiry <= int(self._clock()):
            return InvalidParameter("expiry", "must be in the future")
        if params.option_amount <= 0:
            return InvalidParameter("option_amount", "must be greater than 0")
        if salt < 0:
            return InvalidParameter("salt", "must not be negative")
        return None

    async def validate(self, maker: str, params: OptionParams, salt: int) -> ValidationResult:
        """Composite precondition check for signing with ``salt``.

        Returns the first failing reason. Parameter failures never reach the
        verifier.

        Raises:
            VerifierUnavailable: If the availability check cannot complete
        """
        error = self.check_parameters(maker, params, salt)
        if error is not None:
            return ValidationResult(error=error)
        try:
            await self.ensure_available(maker, params, salt)
        except DigestCollision as e:
            return ValidationResult(error=e)
        return ValidationResult()

    async def create_parallel_orders(
        self,
        maker: str,
        base_params: OptionParams,
        count: int,
        max_attempts: int = DEFAULT_MAX_ATTEMPTS,
    ) -> List[OrderConfig]:
        """Find an available salt for each of ``count`` orders concurrently.

        Availability is checked per order, not reserved. The verifier is the
        only arbiter once the orders are filled.
        """

        async def prepare() -> OrderConfig:
            salt = await self.find_available_salt(maker, base_params, max_attempts)
            return OrderConfig(
                maker=maker,
                option_params=base_params.with_salt(salt),
                salt=salt,
                digest=self.compute_digest(maker, base_params, salt),
            )

        return list(await asyncio.gather(*(prepare() for _ in range(count))))
