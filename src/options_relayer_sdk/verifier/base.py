"""Interfaces of the on-chain collaborators."""

from typing import Protocol


class OptionHashVerifier(Protocol):
    """Read-only view of the option verifier's consumed-digest set.

    Implementations raise ``VerifierUnavailable`` on transport failures.
    """

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
        ...

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
        ...


class PermitTokenReader(Protocol):
    """Reads the token metadata an EIP-2612 permit signature needs."""

    async def get_token_name(self, token_address: str) -> str:
        ...

    async def get_permit_nonce(self, token_address: str, owner: str) -> int:
        ...
