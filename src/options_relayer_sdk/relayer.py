"""Options relayer facade.

Wires the hash manager, an order store and (optionally) a maker-side builder
into the operations a relayer backend exposes:
1. Accept a complete order after checking both signatures and the digest
2. Serve stored orders by hash or filter
3. Hand takers the ``fillOrderArgs`` arguments for an open order
4. Record fills and maker cancellations
"""

import logging
from typing import List, Optional

import httpx
from eth_keys.exceptions import BadSignature, ValidationError

from .config import ResolvedRelayerConfig
from .errors import (
    InteractionDecodeError,
    InvalidParameter,
    InvalidStatusTransition,
    OrderNotFound,
    SignatureMismatch,
)
from .orders.builder import OptionOrderBuilder, prepare_fill
from .orders.codec import (
    address_to_int,
    create_option_domain,
    create_order_domain,
    encode_address,
)
from .orders.hash_manager import OrderHashManager
from .orders.hashing import compute_option_digest, compute_order_digest, recover_signer
from .orders.schema import decode_interaction_payload
from .orders.signing import TypedDataSigner
from .orders.types import CompleteOrder, EIP712Domain, FillArgs, OptionOrderRequest
from .store import InMemoryOrderStore, OrderFilters, OrderStatus, OrderStore, StoredOrder
from .verifier import OptionVerifierClient

logger = logging.getLogger(__name__)


def compute_order_hash(order_domain: EIP712Domain, complete_order: CompleteOrder) -> str:
    """0x-prefixed EIP-712 hash of the LOP order (what the protocol calls ``hashOrder``)."""
    digest = compute_order_digest(
        order_domain, complete_order.order, complete_order.original_addresses
    )
    return "0x" + digest.hex()


class OptionsRelayer:
    """Relayer operations over a store and the option verifier.

    Example:
        ```python
        config = load_config_from_env()
        relayer = OptionsRelayer.from_config(config, signer=LocalTypedDataSigner(key))
        stored = await relayer.create_order(OptionOrderRequest(...))
        fill_args = await relayer.prepare_fill(stored.order_hash, 10**18)
        ```
    """

    def __init__(
        self,
        hash_manager: OrderHashManager,
        order_domain: EIP712Domain,
        store: Optional[OrderStore] = None,
        builder: Optional[OptionOrderBuilder] = None,
    ):
        """Initialize the relayer.

        Args:
            hash_manager: Hash manager bound to the option verifier
            order_domain: LOP domain (``create_order_domain``)
            store: Order store (default: a fresh ``InMemoryOrderStore``)
            builder: Maker-side builder; required only for ``create_order``
        """
        self.hash_manager = hash_manager
        self.order_domain = order_domain
        self.options_domain = hash_manager.options_domain
        self.store = store if store is not None else InMemoryOrderStore()
        self.builder = builder
        self._owned_verifier: Optional[OptionVerifierClient] = None

    @classmethod
    def from_config(
        cls,
        config: ResolvedRelayerConfig,
        signer: Optional[TypedDataSigner] = None,
        store: Optional[OrderStore] = None,
        http_client: Optional[httpx.AsyncClient] = None,
    ) -> "OptionsRelayer":
        """Build a relayer talking to the verifier at ``config.rpc_url``.

        The builder is only created when a signer is given. A shared
        ``http_client`` is left open by ``close``.
        """
        verifier = OptionVerifierClient(
            config.rpc_url,
            config.options_nft_address,
            timeout=config.verifier_timeout_seconds,
            http_client=http_client,
        )
        hash_manager = OrderHashManager(
            verifier,
            create_option_domain(config.options_nft_address, config.chain_id),
            timeout=config.verifier_timeout_seconds,
            retry_delay=config.salt_retry_delay_seconds,
        )
        order_domain = create_order_domain(config.lop_address, config.chain_id)
        builder = None
        if signer is not None:
            builder = OptionOrderBuilder(
                signer=signer,
                hash_manager=hash_manager,
                order_domain=order_domain,
                token_reader=verifier,
                max_salt_attempts=config.salt_max_attempts,
            )
        relayer = cls(hash_manager, order_domain, store=store, builder=builder)
        relayer._owned_verifier = verifier
        return relayer

    async def close(self) -> None:
        """Close the verifier client created by ``from_config``."""
        if self._owned_verifier is not None:
            await self._owned_verifier.aclose()

    async def __aenter__(self) -> "OptionsRelayer":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.close()

    def order_hash(self, complete_order: CompleteOrder) -> str:
        return compute_order_hash(self.order_domain, complete_order)

    def _check_signatures(self, complete_order: CompleteOrder) -> None:
        maker = complete_order.maker
        params = complete_order.option_params
        if params.salt is None:
            raise InvalidParameter("salt", "option params must carry a salt")

        for digest, signature in (
            (
                compute_order_digest(
                    self.order_domain, complete_order.order, complete_order.original_addresses
                ),
                complete_order.lop_signature,
            ),
            (
                compute_option_digest(self.options_domain, maker, params, params.salt),
                complete_order.option_signature,
            ),
        ):
            try:
                recovered = recover_signer(digest, signature)
            except (BadSignature, ValidationError) as e:
                raise SignatureMismatch(maker, "<unrecoverable>") from e
            if recovered.lower() != maker.lower():
                raise SignatureMismatch(maker, recovered)

    def _check_calldata(self, complete_order: CompleteOrder) -> None:
        """Require the calldata a taker will send to match what was signed."""
        maker = complete_order.maker
        order = complete_order.order
        original = complete_order.original_addresses
        if original.maker.lower() != maker.lower():
            raise SignatureMismatch(maker, original.maker)

        for field in ("maker", "receiver", "maker_asset", "taker_asset"):
            if getattr(order, field).lower() != encode_address(getattr(original, field)):
                raise InvalidParameter(f"order.{field}", "does not match original_addresses")

        expected_tuple = (
            order.salt,
            address_to_int(original.maker),
            address_to_int(original.receiver),
            address_to_int(original.maker_asset),
            address_to_int(original.taker_asset),
            order.making_amount,
            order.taking_amount,
            order.maker_traits,
        )
        if tuple(complete_order.order_tuple) != expected_tuple:
            raise InvalidParameter("order_tuple", "does not match the signed order")

        try:
            decoded = decode_interaction_payload(
                complete_order.interaction, complete_order.interaction_schema
            )
        except InteractionDecodeError as e:
            raise InvalidParameter("interaction", str(e)) from e

        if decoded.verifier_address.lower() != self.options_domain["verifyingContract"].lower():
            raise InvalidParameter("interaction", "targets a different verifier")
        if decoded.maker.lower() != maker.lower():
            raise SignatureMismatch(maker, decoded.maker)
        if decoded.signature != complete_order.option_signature:
            raise SignatureMismatch(maker, "<interaction signature>")

        params = complete_order.option_params
        carried = decoded.option_params
        if (
            carried.underlying_asset.lower() != params.underlying_asset.lower()
            or carried.strike_asset.lower() != params.strike_asset.lower()
            or carried.strike_price != params.strike_price
            or carried.expiry != params.expiry
            or carried.option_amount != params.option_amount
            or carried.salt != params.salt
        ):
            raise InvalidParameter("interaction", "option fields do not match option_params")
        if decoded.permit != complete_order.permit_signature:
            raise InvalidParameter("interaction", "permit does not match permit_signature")

        digest = compute_option_digest(self.options_domain, maker, params, params.salt)
        if bytes(complete_order.option_digest) != digest:
            raise InvalidParameter("option_digest", "does not match option_params")

    async def submit(self, complete_order: CompleteOrder) -> StoredOrder:
        """Verify and store a complete order.

        Raises:
            SignatureMismatch: If either signature does not recover to the maker,
                or the interaction carries another maker or signature
            InvalidParameter: If the option parameters fail validation, or the
                order words, order tuple or interaction differ from the signed data
            DigestCollision: If the option digest is already consumed
            VerifierUnavailable: If the verifier could not be reached
            OrderAlreadyExists: If the order is already stored
        """
        self._check_signatures(complete_order)
        self._check_calldata(complete_order)
        params = complete_order.option_params
        result = await self.hash_manager.validate(complete_order.maker, params, params.salt)
        if not result.ok:
            logger.warning(
                "Rejected order from %s: %s", complete_order.maker, result.reason
            )
            raise result.error
        return await self.store.insert(self.order_hash(complete_order), complete_order)

    async def create_order(self, request: OptionOrderRequest) -> StoredOrder:
        """Build an order with the maker-side builder and submit it.

        Raises:
            InvalidParameter: If the relayer has no builder
        """
        if self.builder is None:
            raise InvalidParameter("builder", "create_order needs a signer-backed builder")
        complete = await self.builder.build_complete_option(request)
        return await self.submit(complete)

    async def get(self, order_hash: str) -> Optional[StoredOrder]:
        return await self.store.get_by_hash(order_hash)

    async def list_orders(self, filters: Optional[OrderFilters] = None) -> List[StoredOrder]:
        return await self.store.list(filters)

    async def _require(self, order_hash: str) -> StoredOrder:
        stored = await self.store.get_by_hash(order_hash)
        if stored is None:
            raise OrderNotFound(order_hash)
        return stored

    async def prepare_fill(self, order_hash: str, fill_amount: int) -> FillArgs:
        """Fill arguments for an open order.

        Raises:
            OrderNotFound: If the hash is unknown
            InvalidStatusTransition: If the order is no longer open
            InvalidParameter: If fill_amount is not positive
        """
        stored = await self._require(order_hash)
        if stored.status is not OrderStatus.OPEN:
            raise InvalidStatusTransition(
                stored.order_hash, stored.status.value, OrderStatus.FILLED.value
            )
        return prepare_fill(stored.complete_order, fill_amount)

    async def mark_filled(self, order_hash: str) -> StoredOrder:
        return await self.store.update_status(order_hash, OrderStatus.FILLED)

    async def cancel(self, order_hash: str, maker: str) -> StoredOrder:
        """Cancel an open order on behalf of its maker.

        Raises:
            OrderNotFound: If the hash is unknown
            InvalidParameter: If maker is not the order's maker
            InvalidStatusTransition: If the order is no longer open
        """
        stored = await self._require(order_hash)
        if stored.maker.lower() != maker.lower():
            raise InvalidParameter("maker", "only the order maker can cancel")
        return await self.store.update_status(order_hash, OrderStatus.CANCELLED)

    async def clear(self) -> int:
        return await self.store.clear()
