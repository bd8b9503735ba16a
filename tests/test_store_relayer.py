"""Tests for the order store and the relayer facade."""

import asyncio
import itertools
import time
from dataclasses import replace

import httpx
import pytest
from eth_account import Account

from options_relayer_sdk import OptionsRelayer, compute_order_hash
from options_relayer_sdk.config import resolve_config
from options_relayer_sdk.errors import (
    DigestCollision,
    InvalidParameter,
    InvalidStatusTransition,
    OrderAlreadyExists,
    OrderNotFound,
    SignatureMismatch,
)
from options_relayer_sdk.orders import (
    LocalTypedDataSigner,
    OptionOrderBuilder,
    OptionOrderRequest,
    OrderHashManager,
    address_to_int,
    build_interaction_payload,
    create_option_domain,
    create_order_domain,
    decode_taker_traits_interaction_length,
    encode_address,
    sign_order,
)
from options_relayer_sdk.orders.types import PermitSignature
from options_relayer_sdk.store import InMemoryOrderStore, OrderStatus
from options_relayer_sdk.verifier import InMemoryOptionVerifier

# Test wallets (DO NOT use in production)
TEST_PRIVATE_KEY = "0x" + "ab" * 32
TEST_ADDRESS = Account.from_key(TEST_PRIVATE_KEY).address
OTHER_PRIVATE_KEY = "0x" + "cd" * 32
OTHER_ADDRESS = Account.from_key(OTHER_PRIVATE_KEY).address

LOP_ADDRESS = "0x" + "11" * 20
OPTIONS_NFT_ADDRESS = "0x" + "22" * 20
WETH = "0x" + "33" * 20
USDC = "0x" + "44" * 20
DUMMY = "0x" + "55" * 20

ORDER_DOMAIN = create_order_domain(LOP_ADDRESS, 31337)
OPTION_DOMAIN = create_option_domain(OPTIONS_NFT_ADDRESS, 31337)


class FakeClock:
    """Strictly increasing clock starting at the real time."""

    def __init__(self):
        self.now = time.time()
        self._ticks = itertools.count()

    def __call__(self):
        return self.now + next(self._ticks) * 0.001


def make_request(**overrides):
    values = dict(
        underlying_asset=WETH,
        strike_asset=USDC,
        dummy_token_address=DUMMY,
        strike_price=2_000_000_000,
        option_amount=10**18,
        premium=50_000_000,
        expiry=int(time.time()) + 86400,
    )
    values.update(overrides)
    return OptionOrderRequest(**values)


def make_relayer(private_key=TEST_PRIVATE_KEY, verifier=None, clock=None):
    verifier = verifier if verifier is not None else InMemoryOptionVerifier(OPTION_DOMAIN)
    hash_manager = OrderHashManager(verifier, OPTION_DOMAIN, retry_delay=0)
    builder = OptionOrderBuilder(
        signer=LocalTypedDataSigner(private_key),
        hash_manager=hash_manager,
        order_domain=ORDER_DOMAIN,
    )
    return OptionsRelayer(
        hash_manager,
        ORDER_DOMAIN,
        store=InMemoryOrderStore(clock=clock or FakeClock()),
        builder=builder,
    )


class TestOrderStore:
    """Tests for the in-memory store lifecycle."""

    def _complete(self, **overrides):
        relayer = make_relayer()
        return asyncio.run(relayer.builder.build_complete_option(make_request(**overrides)))

    def test_insert_and_get(self):
        store = InMemoryOrderStore()
        complete = self._complete()

        stored = asyncio.run(store.insert("0xAB", complete))

        assert stored.status is OrderStatus.OPEN
        assert stored.created_at == stored.updated_at
        assert asyncio.run(store.get_by_hash("0xab")).complete_order is complete

    def test_insert_duplicate(self):
        store = InMemoryOrderStore()
        complete = self._complete()
        asyncio.run(store.insert("0xab", complete))

        with pytest.raises(OrderAlreadyExists):
            asyncio.run(store.insert("0xab", complete))

    def test_get_missing(self):
        assert asyncio.run(InMemoryOrderStore().get_by_hash("0xdead")) is None

    @pytest.mark.parametrize(
        "status", [OrderStatus.FILLED, OrderStatus.CANCELLED, OrderStatus.EXPIRED]
    )
    def test_terminal_states_are_final(self, status):
        store = InMemoryOrderStore()
        asyncio.run(store.insert("0x01", self._complete()))

        updated = asyncio.run(store.update_status("0x01", status))

        assert updated.status is status
        for target in OrderStatus:
            with pytest.raises(InvalidStatusTransition):
                asyncio.run(store.update_status("0x01", target))

    def test_open_to_open_rejected(self):
        store = InMemoryOrderStore()
        asyncio.run(store.insert("0x01", self._complete()))

        with pytest.raises(InvalidStatusTransition):
            asyncio.run(store.update_status("0x01", OrderStatus.OPEN))

    def test_update_missing(self):
        with pytest.raises(OrderNotFound):
            asyncio.run(InMemoryOrderStore().update_status("0x01", OrderStatus.FILLED))

    def test_expiry_evaluated_at_read(self):
        """Test that an open order past its expiry reads as expired."""
        complete = self._complete()
        clock = FakeClock()
        store = InMemoryOrderStore(clock=clock)
        asyncio.run(store.insert("0x01", complete))

        clock.now = complete.option_params.expiry + 1

        stored = asyncio.run(store.get_by_hash("0x01"))
        assert stored.status is OrderStatus.EXPIRED
        with pytest.raises(InvalidStatusTransition):
            asyncio.run(store.update_status("0x01", OrderStatus.FILLED))

    def test_list_filters(self):
        store = InMemoryOrderStore(clock=FakeClock())
        first = self._complete()
        second = self._complete(strike_asset=WETH, underlying_asset=USDC)
        asyncio.run(store.insert("0x01", first))
        asyncio.run(store.insert("0x02", second))
        asyncio.run(store.update_status("0x01", OrderStatus.CANCELLED))

        assert [s.order_hash for s in asyncio.run(store.list())] == ["0x02", "0x01"]
        assert [
            s.order_hash for s in asyncio.run(store.list({"status": OrderStatus.OPEN}))
        ] == ["0x02"]
        assert [
            s.order_hash for s in asyncio.run(store.list({"taker_asset": USDC}))
        ] == ["0x01"]
        assert len(asyncio.run(store.list({"maker": TEST_ADDRESS.lower()}))) == 2
        assert asyncio.run(store.list({"maker": OTHER_ADDRESS})) == []
        assert len(asyncio.run(store.list({"limit": 1}))) == 1

    def test_list_limit_range(self):
        with pytest.raises(InvalidParameter, match="limit"):
            asyncio.run(InMemoryOrderStore().list({"limit": 101}))

    def test_clear(self):
        store = InMemoryOrderStore()
        asyncio.run(store.insert("0x01", self._complete()))

        assert asyncio.run(store.clear()) == 1
        assert asyncio.run(store.list()) == []


class TestOptionsRelayer:
    """Tests for the relayer facade."""

    def test_create_and_fetch(self):
        relayer = make_relayer()

        stored = asyncio.run(relayer.create_order(make_request()))

        assert stored.order_hash == compute_order_hash(ORDER_DOMAIN, stored.complete_order)
        assert asyncio.run(relayer.get(stored.order_hash)) == stored
        assert asyncio.run(relayer.list_orders()) == [stored]

    def test_submit_rejects_foreign_signature(self):
        """Test that an order signed by someone other than its maker is refused."""
        relayer = make_relayer()
        complete = asyncio.run(
            make_relayer(OTHER_PRIVATE_KEY).builder.build_complete_option(make_request())
        )
        forged = replace(complete, maker=TEST_ADDRESS)

        with pytest.raises(SignatureMismatch):
            asyncio.run(relayer.submit(forged))
        assert asyncio.run(relayer.list_orders()) == []

    def test_submit_rejects_tampered_params(self):
        """Test that changing the strike after signing breaks the option signature."""
        relayer = make_relayer()
        complete = asyncio.run(relayer.builder.build_complete_option(make_request()))
        tampered = replace(
            complete,
            option_params=replace(complete.option_params, strike_price=1),
        )

        with pytest.raises(SignatureMismatch):
            asyncio.run(relayer.submit(tampered))

    def test_submit_rejects_used_digest(self):
        verifier = InMemoryOptionVerifier(OPTION_DOMAIN)
        relayer = make_relayer(verifier=verifier)
        complete = asyncio.run(relayer.builder.build_complete_option(make_request()))
        verifier.mark_used(complete.option_digest)

        with pytest.raises(DigestCollision):
            asyncio.run(relayer.submit(complete))

    def test_submit_twice(self):
        relayer = make_relayer()
        complete = asyncio.run(relayer.builder.build_complete_option(make_request()))
        asyncio.run(relayer.submit(complete))

        with pytest.raises(OrderAlreadyExists):
            asyncio.run(relayer.submit(complete))

    def test_prepare_fill_and_mark_filled(self):
        relayer = make_relayer()
        stored = asyncio.run(relayer.create_order(make_request()))

        fill = asyncio.run(relayer.prepare_fill(stored.order_hash, 10**18))
        assert decode_taker_traits_interaction_length(fill.taker_traits) == len(fill.interaction)

        filled = asyncio.run(relayer.mark_filled(stored.order_hash))
        assert filled.status is OrderStatus.FILLED
        with pytest.raises(InvalidStatusTransition):
            asyncio.run(relayer.prepare_fill(stored.order_hash, 10**18))

    def test_prepare_fill_unknown(self):
        with pytest.raises(OrderNotFound):
            asyncio.run(make_relayer().prepare_fill("0x01", 1))

    def test_cancel(self):
        relayer = make_relayer()
        stored = asyncio.run(relayer.create_order(make_request()))

        with pytest.raises(InvalidParameter, match="maker"):
            asyncio.run(relayer.cancel(stored.order_hash, OTHER_ADDRESS))

        cancelled = asyncio.run(relayer.cancel(stored.order_hash, TEST_ADDRESS.lower()))
        assert cancelled.status is OrderStatus.CANCELLED

    def test_create_needs_builder(self):
        hash_manager = OrderHashManager(InMemoryOptionVerifier(OPTION_DOMAIN), OPTION_DOMAIN)
        relayer = OptionsRelayer(hash_manager, ORDER_DOMAIN)

        with pytest.raises(InvalidParameter, match="builder"):
            asyncio.run(relayer.create_order(make_request()))

    def test_clear(self):
        relayer = make_relayer()
        asyncio.run(relayer.create_order(make_request()))

        assert asyncio.run(relayer.clear()) == 1


class TestSubmitCalldata:
    """Tests that submit only stores calldata matching the signed order."""

    def _built(self, relayer, **overrides):
        return asyncio.run(relayer.builder.build_complete_option(make_request(**overrides)))

    def _reinteract(self, complete, maker=None, params=None, verifier=OPTIONS_NFT_ADDRESS):
        return replace(
            complete,
            interaction=build_interaction_payload(
                maker or complete.maker,
                params or complete.option_params,
                complete.option_signature,
                verifier,
            ),
        )

    def _assert_rejected(self, relayer, complete, error, match=None):
        with pytest.raises(error, match=match):
            asyncio.run(relayer.submit(complete))
        assert asyncio.run(relayer.list_orders()) == []

    def test_untampered_order_accepted(self):
        relayer = make_relayer()
        complete = self._built(relayer)

        stored = asyncio.run(relayer.submit(complete))

        assert stored.complete_order.interaction == complete.interaction

    def test_interaction_from_another_order(self):
        """Test that a validly signed order cannot carry another order's interaction."""
        relayer = make_relayer()
        complete = self._built(relayer)
        other = self._built(relayer, strike_price=1)

        spliced = replace(complete, interaction=other.interaction)

        self._assert_rejected(relayer, spliced, SignatureMismatch)

    def test_interaction_with_other_strike(self):
        relayer = make_relayer()
        complete = self._built(relayer)
        params = replace(complete.option_params, strike_price=1)

        self._assert_rejected(
            relayer, self._reinteract(complete, params=params), InvalidParameter, "option fields"
        )

    @pytest.mark.parametrize(
        "field,value",
        [
            ("underlying_asset", USDC),
            ("strike_asset", WETH),
            ("expiry", 1),
            ("option_amount", 1),
            ("salt", 1),
        ],
    )
    def test_interaction_option_fields(self, field, value):
        relayer = make_relayer()
        complete = self._built(relayer)
        params = replace(complete.option_params, **{field: value})

        self._assert_rejected(
            relayer, self._reinteract(complete, params=params), InvalidParameter, "option fields"
        )

    def test_interaction_with_other_maker(self):
        relayer = make_relayer()
        complete = self._built(relayer)

        self._assert_rejected(
            relayer, self._reinteract(complete, maker=OTHER_ADDRESS), SignatureMismatch
        )

    def test_interaction_for_other_verifier(self):
        relayer = make_relayer()
        complete = self._built(relayer)

        self._assert_rejected(
            relayer,
            self._reinteract(complete, verifier=DUMMY),
            InvalidParameter,
            "different verifier",
        )

    def test_undecodable_interaction(self):
        relayer = make_relayer()
        complete = self._built(relayer)

        self._assert_rejected(
            relayer,
            replace(complete, interaction=complete.interaction[:-1]),
            InvalidParameter,
            "interaction",
        )

    def test_permit_not_in_interaction(self):
        relayer = make_relayer()
        complete = self._built(relayer)
        permit = PermitSignature(deadline=1, v=27, r=b"\x01" * 32, s=b"\x02" * 32)

        self._assert_rejected(
            relayer, replace(complete, permit_signature=permit), InvalidParameter, "permit"
        )

    def test_order_tuple_taking_amount(self):
        """Test that a premium changed only in the calldata tuple is refused."""
        relayer = make_relayer()
        complete = self._built(relayer)
        order_tuple = list(complete.order_tuple)
        order_tuple[6] = 1

        self._assert_rejected(
            relayer,
            replace(complete, order_tuple=tuple(order_tuple)),
            InvalidParameter,
            "order_tuple",
        )

    def test_order_tuple_receiver(self):
        relayer = make_relayer()
        complete = self._built(relayer)
        order_tuple = list(complete.order_tuple)
        order_tuple[2] = address_to_int(OTHER_ADDRESS)

        self._assert_rejected(
            relayer,
            replace(complete, order_tuple=tuple(order_tuple)),
            InvalidParameter,
            "order_tuple",
        )

    @pytest.mark.parametrize("field", ["maker", "receiver", "maker_asset", "taker_asset"])
    def test_order_address_words(self, field):
        relayer = make_relayer()
        complete = self._built(relayer)
        order = replace(complete.order, **{field: encode_address(OTHER_ADDRESS)})

        self._assert_rejected(
            relayer, replace(complete, order=order), InvalidParameter, f"order.{field}"
        )

    def test_signed_order_for_other_maker(self):
        """Test that the LOP order must name the submitting maker."""
        relayer = make_relayer()
        complete = self._built(relayer)
        original = replace(complete.original_addresses, maker=OTHER_ADDRESS)
        order = replace(complete.order, maker=encode_address(OTHER_ADDRESS))
        order_tuple = list(complete.order_tuple)
        order_tuple[1] = address_to_int(OTHER_ADDRESS)
        lop_signature = asyncio.run(
            sign_order(LocalTypedDataSigner(TEST_PRIVATE_KEY), order, ORDER_DOMAIN, original)
        )

        rebound = replace(
            complete,
            order=order,
            order_tuple=tuple(order_tuple),
            original_addresses=original,
            lop_signature=lop_signature,
        )

        self._assert_rejected(relayer, rebound, SignatureMismatch)

    def test_option_digest(self):
        relayer = make_relayer()
        complete = self._built(relayer)

        self._assert_rejected(
            relayer, replace(complete, option_digest=b"\x00" * 32), InvalidParameter, "option_digest"
        )


class TestRelayerFromConfig:
    """Tests for OptionsRelayer.from_config."""

    def _config(self):
        return resolve_config(
            {
                "lop_address": LOP_ADDRESS,
                "options_nft_address": OPTIONS_NFT_ADDRESS,
                "salt_max_attempts": 3,
            }
        )

    def test_wires_domains_and_builder(self):
        relayer = OptionsRelayer.from_config(
            self._config(), signer=LocalTypedDataSigner(TEST_PRIVATE_KEY)
        )

        assert relayer.order_domain == ORDER_DOMAIN
        assert relayer.options_domain == OPTION_DOMAIN
        assert relayer.builder.max_salt_attempts == 3
        asyncio.run(relayer.close())

    def test_without_signer(self):
        relayer = OptionsRelayer.from_config(self._config())

        assert relayer.builder is None
        asyncio.run(relayer.close())

    def test_close_leaves_shared_http_client_open(self):
        async def run():
            http_client = httpx.AsyncClient()
            async with OptionsRelayer.from_config(self._config(), http_client=http_client):
                pass
            closed = http_client.is_closed
            await http_client.aclose()
            return closed

        assert not asyncio.run(run())
