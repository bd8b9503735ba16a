"""Maker and taker traits bit layouts.

Bit positions follow the limit order protocol's MakerTraitsLib and
TakerTraitsLib. Any drift here only shows up as an on-chain revert.
"""

import secrets
from typing import Tuple

from .types import MakerTraitFlags

# Maker traits flags (single bits)
NO_PARTIAL_FILLS_FLAG = 255
ALLOW_MULTIPLE_FILLS_FLAG = 254
PRE_INTERACTION_CALL_FLAG = 252
POST_INTERACTION_CALL_FLAG = 251
HAS_EXTENSION_FLAG = 249
USE_PERMIT2_FLAG = 248
UNWRAP_WETH_FLAG = 247

# Maker traits nonce: bits [120, 160)
NONCE_OFFSET = 120
NONCE_BITS = 40
NONCE_MASK = (1 << NONCE_BITS) - 1

# Taker traits: interaction length at bits [200, 224)
ARGS_INTERACTION_LENGTH_OFFSET = 200
ARGS_INTERACTION_LENGTH_BITS = 24
ARGS_INTERACTION_LENGTH_MASK = (1 << ARGS_INTERACTION_LENGTH_BITS) - 1

_FLAG_BITS = (
    ("no_partial_fills", NO_PARTIAL_FILLS_FLAG),
    ("allow_multiple_fills", ALLOW_MULTIPLE_FILLS_FLAG),
    ("pre_interaction", PRE_INTERACTION_CALL_FLAG),
    ("post_interaction", POST_INTERACTION_CALL_FLAG),
    ("has_extension", HAS_EXTENSION_FLAG),
    ("use_permit2", USE_PERMIT2_FLAG),
    ("unwrap_weth", UNWRAP_WETH_FLAG),
)


def encode_traits(flags: MakerTraitFlags, nonce: int = 0) -> int:
    """Pack order flags and a nonce into the maker traits word.

    The nonce is masked to 40 bits. No other validation is done.
    """
    traits = (int(nonce) & NONCE_MASK) << NONCE_OFFSET
    for name, bit in _FLAG_BITS:
        if getattr(flags, name):
            traits |= 1 << bit
    return traits


def decode_traits(traits: int) -> Tuple[MakerTraitFlags, int]:
    """Unpack a maker traits word into ``(flags, nonce)``."""
    values = {name: bool((traits >> bit) & 1) for name, bit in _FLAG_BITS}
    nonce = (traits >> NONCE_OFFSET) & NONCE_MASK
    return MakerTraitFlags(**values), nonce


def generate_random_nonce() -> int:
    """Random 40-bit nonce for the traits word."""
    return secrets.randbits(NONCE_BITS)


def build_taker_traits(interaction_length: int) -> int:
    """Taker traits carrying the byte length of the fill interaction.

    Raises:
        ValueError: If the length does not fit in 24 bits
    """
    if interaction_length < 0 or interaction_length > ARGS_INTERACTION_LENGTH_MASK:
        raise ValueError(f"Interaction length out of range: {interaction_length}")
    return interaction_length << ARGS_INTERACTION_LENGTH_OFFSET


def decode_taker_traits_interaction_length(taker_traits: int) -> int:
    return (taker_traits >> ARGS_INTERACTION_LENGTH_OFFSET) & ARGS_INTERACTION_LENGTH_MASK
