"""Tests for maker and taker traits."""

import itertools

import pytest

from options_relayer_sdk.orders import (
    MakerTraitFlags,
    build_taker_traits,
    decode_taker_traits_interaction_length,
    decode_traits,
    encode_traits,
    generate_random_nonce,
)
from options_relayer_sdk.orders.traits import (
    ALLOW_MULTIPLE_FILLS_FLAG,
    NO_PARTIAL_FILLS_FLAG,
    NONCE_MASK,
    NONCE_OFFSET,
)
from options_relayer_sdk.orders.types import DEFAULT_OPTION_TRAITS

FLAG_NAMES = [
    "no_partial_fills",
    "allow_multiple_fills",
    "pre_interaction",
    "post_interaction",
    "has_extension",
    "use_permit2",
    "unwrap_weth",
]


class TestMakerTraits:
    """Tests for maker traits encoding."""

    def test_empty_traits(self):
        """Test that no flags and nonce 0 encode to 0."""
        assert encode_traits(MakerTraitFlags()) == 0

    def test_single_flags(self):
        """Test the bit position of the fill flags."""
        assert encode_traits(MakerTraitFlags(no_partial_fills=True)) == 1 << NO_PARTIAL_FILLS_FLAG
        assert (
            encode_traits(MakerTraitFlags(allow_multiple_fills=True))
            == 1 << ALLOW_MULTIPLE_FILLS_FLAG
        )

    def test_default_option_traits(self):
        """Test that option orders are single-fill by default."""
        flags, nonce = decode_traits(encode_traits(DEFAULT_OPTION_TRAITS, 7))

        assert flags.no_partial_fills
        assert not flags.allow_multiple_fills
        assert nonce == 7

    def test_round_trip_all_flag_combinations(self):
        """Test decode(encode(f, n)) == (f, n) for every flag combination."""
        nonces = [0, 1, 42, 2**20 + 3, NONCE_MASK]
        for bits in itertools.product([False, True], repeat=len(FLAG_NAMES)):
            flags = MakerTraitFlags(**dict(zip(FLAG_NAMES, bits)))
            for nonce in nonces:
                assert decode_traits(encode_traits(flags, nonce)) == (flags, nonce)

    def test_flags_do_not_overlap_nonce(self):
        """Test that flags never touch the nonce range."""
        all_flags = MakerTraitFlags(**{name: True for name in FLAG_NAMES})
        traits = encode_traits(all_flags, 0)

        assert (traits >> NONCE_OFFSET) & NONCE_MASK == 0

    def test_nonce_is_masked(self):
        """Test that nonces wider than 40 bits are truncated."""
        _, nonce = decode_traits(encode_traits(MakerTraitFlags(), (1 << 40) + 5))

        assert nonce == 5

    def test_random_nonce_range(self):
        """Test that random nonces fit in 40 bits."""
        for _ in range(100):
            assert 0 <= generate_random_nonce() <= NONCE_MASK


class TestTakerTraits:
    """Tests for taker traits."""

    def test_interaction_length(self):
        """Test the interaction length shift."""
        assert build_taker_traits(340) == 340 << 200
        assert decode_taker_traits_interaction_length(build_taker_traits(340)) == 340

    def test_zero_length(self):
        assert build_taker_traits(0) == 0

    def test_length_out_of_range(self):
        """Test that lengths beyond 24 bits are rejected."""
        with pytest.raises(ValueError, match="out of range"):
            build_taker_traits(1 << 24)
        with pytest.raises(ValueError, match="out of range"):
            build_taker_traits(-1)
