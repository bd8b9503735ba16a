"""Error taxonomy for the options relayer core.

Input errors subclass ``ValueError`` so callers that already catch
``ValueError`` for bad input keep working.
"""

from typing import Optional


class OptionsRelayerError(Exception):
    """Base class for all relayer errors."""


class InvalidAddressFormat(OptionsRelayerError, ValueError):
    """Address is not 40 hex characters (after stripping ``0x``)."""

    def __init__(self, value: object, field: Optional[str] = None):
        self.value = value
        self.field = field
        label = f"{field}: " if field else ""
        super().__init__(f"Invalid address format: {label}{value!r}")


class InvalidParameter(OptionsRelayerError, ValueError):
    """Non-positive amount or price, past expiry, negative salt, etc."""

    def __init__(self, field: str, message: str):
        self.field = field
        super().__init__(f"Invalid {field}: {message}")


class VerifierUnavailable(OptionsRelayerError):
    """The external verifier could not be reached. Retry with backoff."""


class DigestCollision(OptionsRelayerError):
    """The option digest for this salt has already been consumed on-chain.

    Terminal for the given salt: pick a fresh salt instead of retrying.
    """

    def __init__(self, digest: bytes, salt: int):
        self.digest = digest
        self.salt = salt
        super().__init__(f"Option digest 0x{digest.hex()} already used (salt={salt})")


class SaltExhaustion(OptionsRelayerError):
    """No unused salt was found within the attempt budget."""

    def __init__(self, attempts: int):
        self.attempts = attempts
        super().__init__(f"No available salt found after {attempts} attempts")


class SignatureMismatch(OptionsRelayerError):
    """A signature does not recover to the expected maker."""

    def __init__(self, expected: str, recovered: str):
        self.expected = expected
        self.recovered = recovered
        super().__init__(
            f"Signature recovered to {recovered}, expected {expected}"
        )


class InteractionDecodeError(OptionsRelayerError, ValueError):
    """Interaction bytes do not match any known payload schema."""


class InvalidStatusTransition(OptionsRelayerError):
    """A stored order cannot move from its current status to the requested one."""

    def __init__(self, order_hash: str, current: str, requested: str):
        self.order_hash = order_hash
        self.current = current
        self.requested = requested
        super().__init__(
            f"Order {order_hash} cannot move from {current} to {requested}"
        )


class OrderNotFound(OptionsRelayerError):
    """No stored order has this hash."""

    def __init__(self, order_hash: str):
        self.order_hash = order_hash
        super().__init__(f"Order {order_hash} not found")


class OrderAlreadyExists(OptionsRelayerError):
    """An order with this hash is already stored."""

    def __init__(self, order_hash: str):
        self.order_hash = order_hash
        super().__init__(f"Order {order_hash} already exists")


__all__ = [
    "OptionsRelayerError",
    "InvalidAddressFormat",
    "InvalidParameter",
    "VerifierUnavailable",
    "DigestCollision",
    "SaltExhaustion",
    "SignatureMismatch",
    "InteractionDecodeError",
    "InvalidStatusTransition",
    "OrderNotFound",
    "OrderAlreadyExists",
]
