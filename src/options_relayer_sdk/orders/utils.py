"""Constants and unit helpers for option orders."""

from decimal import Decimal
from typing import Union

# Zero address
ZERO_ADDRESS = "0x0000000000000000000000000000000000000000"

# Local hardhat network
DEFAULT_CHAIN_ID = 31337

# EIP-712 domain of the limit order protocol (fixed by the protocol)
ORDER_DOMAIN_NAME = "1inch Limit Order Protocol"
ORDER_DOMAIN_VERSION = "4"

# EIP-712 domain of the option NFT verifier
OPTION_DOMAIN_NAME = "OptionNFT"
OPTION_DOMAIN_VERSION = "1"

# EIP-2612 permits: most tokens use version "1"
PERMIT_DOMAIN_VERSION = "1"

UINT256_MAX = 2**256 - 1

# 2^53 - 1, the largest integer a JSON number holds exactly
MAX_SAFE_INTEGER = 2**53 - 1


def strip_hex_prefix(value: str) -> str:
    """Remove a leading ``0x``/``0X`` if present."""
    return value[2:] if value[:2] in ("0x", "0X") else value


def format_units(amount: int, decimals: int) -> str:
    """Format a base-unit integer as a human readable decimal string.

    Args:
        amount: Amount in base units (e.g., 2000000000 for 2000 USDC)
        decimals: Token decimals (e.g., 6 for USDC, 18 for ETH)

    Returns:
        Human readable string without trailing zeros (e.g., "2000")
    """
    sign = "-" if amount < 0 else ""
    whole, frac = divmod(abs(amount), 10**decimals)
    if not frac:
        return f"{sign}{whole}"
    frac_str = str(frac).rjust(decimals, "0").rstrip("0")
    return f"{sign}{whole}.{frac_str}"


def parse_units(amount: Union[str, int, Decimal], decimals: int) -> int:
    """Parse a human readable amount into base units.

    Floats are rejected; amounts above 2^53 lose precision as floats.

    Args:
        amount: Amount as a decimal string, int or Decimal (e.g., "1.5")
        decimals: Token decimals

    Returns:
        Integer amount in base units

    Raises:
        ValueError: If the amount is a float or has more precision than decimals
    """
    if isinstance(amount, float):
        raise ValueError("Floating point amounts are not accepted; pass a string")
    value = Decimal(amount) * (Decimal(10) ** decimals)
    if value != value.to_integral_value():
        raise ValueError(f"Amount {amount} has more than {decimals} decimals")
    return int(value)
