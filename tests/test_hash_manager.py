"""Tests for the order hash manager."""

import asyncio
import time

import pytest
from eth_account import Account

from options_relayer_sdk.errors import (
    DigestCollision,
    InvalidAddressFormat,
    InvalidParameter,
    SaltExhaustion,
    VerifierUnavailable,
)
from options_relayer_sdk.orders import (
    OptionParams,
    OrderHashManager,
    SaltGenerator,
    compute_option_digest,
    create_option_domain,
)
from options_relayer_sdk.verifier import InMemoryOptionVerifier

# Test wallet (DO NOT use in production)
TEST_PRIVATE_KEY = "0x" + "ab" * 32
TEST_ADDRESS = Account.from_key(TEST_PRIVATE_KEY).address

OPTIONS_NFT_ADDRESS = "0x" + "22" * 20
WETH = "0x" + "33" * 20
USDC = "0x" + "44" * 20

OPTION_DOMAIN = create_option_domain(OPTIONS_NFT_ADDRESS, 31337)


def make_params(**overrides):
    values = dict(
        underlying_asset=WETH,
        strike_asset=USDC,
        strike_price=2_000_000_000,
        option_amount=10**18,
        premium=50_000_000,
        expiry=int(time.time()) + 86400,
    )
    values.update(overrides)
    return OptionParams(**values)


class PinnedSalts:
    """Returns a fixed salt per attempt."""

    def __init__(self, *salts):
        self.salts = salts

    def generate(self, maker, params, timestamp_offset=0):
        return self.salts[timestamp_offset % len(self.salts)]


class SlowVerifier(InMemoryOptionVerifier):
    async def is_option_hash_available(self, *args):
        await asyncio.sleep(1)
        return True


class DownVerifier(InMemoryOptionVerifier):
    async def is_option_hash_available(self, *args):
        self.calls += 1
        raise VerifierUnavailable("connection refused")


def make_manager(verifier=None, salts=None, **kwargs):
    verifier = verifier if verifier is not None else InMemoryOptionVerifier(OPTION_DOMAIN)
    kwargs.setdefault("retry_delay", 0)
    return OrderHashManager(
        verifier,
        OPTION_DOMAIN,
        salt_generator=PinnedSalts(*salts) if salts else None,
        **kwargs,
    )


class TestAvailability:
    """Tests for digest availability checks."""

    def test_fresh_salt_is_available(self):
        manager = make_manager()

        assert asyncio.run(manager.is_available(TEST_ADDRESS, make_params(), 42))

    def test_used_salt_is_unavailable(self):
        """Test that a consumed digest is reported unavailable."""
        verifier = InMemoryOptionVerifier(OPTION_DOMAIN)
        params = make_params()
        verifier.consume(TEST_ADDRESS, params, 42)
        manager = make_manager(verifier)

        assert not asyncio.run(manager.is_available(TEST_ADDRESS, params, 42))
        assert asyncio.run(manager.is_available(TEST_ADDRESS, params, 43))

    def test_ensure_available_returns_digest(self):
        manager = make_manager()
        params = make_params()

        digest = asyncio.run(manager.ensure_available(TEST_ADDRESS, params, 42))

        assert digest == compute_option_digest(OPTION_DOMAIN, TEST_ADDRESS, params, 42)

    def test_ensure_available_collision(self):
        verifier = InMemoryOptionVerifier(OPTION_DOMAIN)
        params = make_params()
        verifier.consume(TEST_ADDRESS, params, 42)

        with pytest.raises(DigestCollision) as exc_info:
            asyncio.run(make_manager(verifier).ensure_available(TEST_ADDRESS, params, 42))

        assert exc_info.value.salt == 42

    def test_timeout_is_verifier_unavailable(self):
        """Test that a hung verifier surfaces as VerifierUnavailable."""
        manager = make_manager(SlowVerifier(OPTION_DOMAIN), timeout=0.01)

        with pytest.raises(VerifierUnavailable, match="timed out"):
            asyncio.run(manager.is_available(TEST_ADDRESS, make_params(), 42))

    def test_compute_digest_matches_verifier(self):
        """Test that the local digest equals the verifier's generateOptionHash."""
        verifier = InMemoryOptionVerifier(OPTION_DOMAIN)
        params = make_params()

        remote = asyncio.run(
            verifier.generate_option_hash(
                params.underlying_asset,
                params.strike_asset,
                TEST_ADDRESS,
                params.strike_price,
                params.expiry,
                params.option_amount,
                5,
            )
        )

        assert make_manager(verifier).compute_digest(TEST_ADDRESS, params, 5) == remote


class TestFindAvailableSalt:
    """Tests for the salt search."""

    def test_collision_retries_with_next_salt(self):
        """Test that a used digest for salt 42 moves on to salt 43."""
        verifier = InMemoryOptionVerifier(OPTION_DOMAIN)
        params = make_params()
        verifier.consume(TEST_ADDRESS, params, 42)
        manager = make_manager(verifier, salts=(42, 43))

        salt = asyncio.run(manager.find_available_salt(TEST_ADDRESS, params))

        assert salt == 43
        assert verifier.calls == 2

    def test_exhaustion(self):
        """Test that a budget of colliding salts raises SaltExhaustion."""
        verifier = InMemoryOptionVerifier(OPTION_DOMAIN)
        params = make_params()
        verifier.consume(TEST_ADDRESS, params, 42)
        manager = make_manager(verifier, salts=(42,))

        with pytest.raises(SaltExhaustion) as exc_info:
            asyncio.run(manager.find_available_salt(TEST_ADDRESS, params, max_attempts=3))

        assert exc_info.value.attempts == 3
        assert verifier.calls == 3

    def test_verifier_failure_is_not_retried(self):
        """Test that transport errors propagate instead of burning attempts."""
        verifier = DownVerifier(OPTION_DOMAIN)

        with pytest.raises(VerifierUnavailable):
            asyncio.run(make_manager(verifier).find_available_salt(TEST_ADDRESS, make_params()))

        assert verifier.calls == 1

    def test_random_salt_search(self):
        """Test the default generator against an empty verifier."""
        manager = make_manager()
        params = make_params()

        salt = asyncio.run(manager.find_available_salt(TEST_ADDRESS, params))

        assert 0 <= salt < 2**32
        assert asyncio.run(manager.is_available(TEST_ADDRESS, params, salt))

    def test_generated_salt_skips_consumed_digests(self):
        """Test that the search never returns a salt the verifier already consumed."""
        generator = SaltGenerator(clock=lambda: 1_700_000_000_000, rng=lambda: 7)
        params = make_params()
        verifier = InMemoryOptionVerifier(OPTION_DOMAIN)
        consumed = {generator.generate(TEST_ADDRESS, params, timestamp_offset=i) for i in range(2)}
        for used_salt in consumed:
            verifier.consume(TEST_ADDRESS, params, used_salt)
        manager = OrderHashManager(verifier, OPTION_DOMAIN, salt_generator=generator, retry_delay=0)

        salt = asyncio.run(manager.find_available_salt(TEST_ADDRESS, params))

        assert salt not in consumed
        assert salt == generator.generate(TEST_ADDRESS, params, timestamp_offset=2)
        assert asyncio.run(manager.is_available(TEST_ADDRESS, params, salt))


class TestValidate:
    """Tests for composite validation."""

    def test_valid(self):
        result = asyncio.run(make_manager().validate(TEST_ADDRESS, make_params(), 42))

        assert result.ok
        assert result.reason is None

    def test_expired_input_never_reaches_verifier(self):
        """Test that a past expiry fails locally."""
        verifier = InMemoryOptionVerifier(OPTION_DOMAIN)
        manager = make_manager(verifier)

        result = asyncio.run(
            manager.validate(TEST_ADDRESS, make_params(expiry=int(time.time()) - 1), 42)
        )

        assert not result.ok
        assert isinstance(result.error, InvalidParameter)
        assert "expiry" in result.reason
        assert verifier.calls == 0

    @pytest.mark.parametrize(
        "overrides, field",
        [
            ({"strike_price": 0}, "strike_price"),
            ({"option_amount": 0}, "option_amount"),
            ({"strike_asset": "0x1234"}, None),
        ],
    )
    def test_invalid_parameters(self, overrides, field):
        verifier = InMemoryOptionVerifier(OPTION_DOMAIN)

        result = asyncio.run(
            make_manager(verifier).validate(TEST_ADDRESS, make_params(**overrides), 42)
        )

        assert not result.ok
        if field is None:
            assert isinstance(result.error, InvalidAddressFormat)
        else:
            assert result.error.field == field
        assert verifier.calls == 0

    def test_negative_salt(self):
        result = asyncio.run(make_manager().validate(TEST_ADDRESS, make_params(), -1))

        assert result.error.field == "salt"

    def test_used_digest(self):
        """Test that a consumed digest is reported as a collision."""
        verifier = InMemoryOptionVerifier(OPTION_DOMAIN)
        params = make_params()
        verifier.consume(TEST_ADDRESS, params, 42)

        result = asyncio.run(make_manager(verifier).validate(TEST_ADDRESS, params, 42))

        assert isinstance(result.error, DigestCollision)

    def test_verifier_down_raises(self):
        """Test that validate raises rather than returning a transport failure."""
        with pytest.raises(VerifierUnavailable):
            asyncio.run(
                make_manager(DownVerifier(OPTION_DOMAIN)).validate(
                    TEST_ADDRESS, make_params(), 42
                )
            )


class TestParallelOrders:
    """Tests for concurrent order preparation."""

    def test_parallel_orders(self):
        """Test that each prepared order carries its salt and digest."""
        params = make_params()
        configs = asyncio.run(make_manager().create_parallel_orders(TEST_ADDRESS, params, 5))

        assert len(configs) == 5
        for config in configs:
            assert config.maker == TEST_ADDRESS
            assert config.option_params.salt == config.salt
            assert config.digest == compute_option_digest(
                OPTION_DOMAIN, TEST_ADDRESS, params, config.salt
            )

    def test_parallel_orders_skip_used(self):
        """Test that no prepared order reuses a consumed digest."""
        verifier = InMemoryOptionVerifier(OPTION_DOMAIN)
        params = make_params()
        used = verifier.consume(TEST_ADDRESS, params, 42)
        manager = make_manager(verifier, salts=(42, 43))

        configs = asyncio.run(manager.create_parallel_orders(TEST_ADDRESS, params, 3))

        assert all(c.digest != used for c in configs)
        assert all(c.salt == 43 for c in configs)
