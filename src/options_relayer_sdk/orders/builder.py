"""Dual-signature option order builder.

An option order is a LOP order plus a separately signed option payload:
1. Pick a salt whose option digest is unused on the verifier
2. Build and sign the LOP order (order domain)
3. Sign the option payload with that salt (option domain)
4. Pack the option payload and signature into the fill interaction bytes

The taker's fill hands the interaction to the verifier, which recomputes the
option digest, checks the maker's signature, marks the digest used and mints.
"""

import asyncio
import logging
import secrets
from dataclasses import replace
from typing import Awaitable, Optional, TypeVar

from eth_keys.exceptions import BadSignature, ValidationError

from ..errors import InvalidParameter, SignatureMismatch
from ..verifier.base import PermitTokenReader
from .codec import address_to_int, canonical_address, encode_address
from .hash_manager import DEFAULT_MAX_ATTEMPTS, OrderHashManager
from .hashing import recover_signer
from .nonce import NonceManager
from .schema import (
    OPTION_INTERACTION_PERMIT_V1,
    OPTION_INTERACTION_V1,
    build_interaction_payload,
)
from .signing import TypedDataSigner, sign_option_params, sign_order, sign_permit
from .traits import build_taker_traits, encode_traits, generate_random_nonce
from .types import (
    BuiltOrder,
    CompleteOrder,
    EIP712Domain,
    FillArgs,
    OptionOrderRequest,
    OptionParams,
    Order,
    OrderRequest,
    OriginalAddresses,
    PermitSignature,
    UniquenessScheme,
    ValidationResult,
)
from .utils import MAX_SAFE_INTEGER, UINT256_MAX

logger = logging.getLogger(__name__)

T = TypeVar("T")


def _check_uint256(field: str, value: int) -> int:
    if not isinstance(value, int) or isinstance(value, bool) or not 0 <= value <= UINT256_MAX:
        raise InvalidParameter(field, f"must be an integer in uint256 range, got {value!r}")
    return value


def build_order(request: OrderRequest) -> BuiltOrder:
    """Build a LOP order.

    Keeps the canonical addresses next to the padded words: signing uses the
    former, calldata the latter.

    Raises:
        InvalidAddressFormat: If any address is malformed
        InvalidParameter: If an amount is outside uint256 range
    """
    original_addresses = OriginalAddresses(
        maker=canonical_address(request.maker, "maker"),
        receiver=canonical_address(request.receiver or request.maker, "receiver"),
        maker_asset=canonical_address(request.maker_asset, "maker_asset"),
        taker_asset=canonical_address(request.taker_asset, "taker_asset"),
    )
    making_amount = _check_uint256("making_amount", request.making_amount)
    taking_amount = _check_uint256("taking_amount", request.taking_amount)

    salt = request.salt if request.salt is not None else secrets.randbelow(MAX_SAFE_INTEGER)
    _check_uint256("salt", salt)

    if request.custom_maker_traits is not None:
        maker_traits = _check_uint256("custom_maker_traits", request.custom_maker_traits)
    else:
        maker_traits = encode_traits(request.flags, request.lop_nonce)

    order = Order(
        salt=salt,
        maker=encode_address(original_addresses.maker),
        receiver=encode_address(original_addresses.receiver),
        maker_asset=encode_address(original_addresses.maker_asset),
        taker_asset=encode_address(original_addresses.taker_asset),
        making_amount=making_amount,
        taking_amount=taking_amount,
        maker_traits=maker_traits,
    )
    order_tuple = (
        order.salt,
        address_to_int(original_addresses.maker),
        address_to_int(original_addresses.receiver),
        address_to_int(original_addresses.maker_asset),
        address_to_int(original_addresses.taker_asset),
        order.making_amount,
        order.taking_amount,
        order.maker_traits,
    )
    return BuiltOrder(order=order, order_tuple=order_tuple, original_addresses=original_addresses)


def prepare_fill(complete_order: CompleteOrder, fill_amount: int) -> FillArgs:
    """Assemble ``fillOrderArgs`` arguments for a taker.

    Raises:
        InvalidParameter: If fill_amount is not positive
    """
    if fill_amount <= 0:
        raise InvalidParameter("fill_amount", "must be greater than 0")
    return FillArgs(
        order_tuple=complete_order.order_tuple,
        r=complete_order.lop_signature.r,
        vs=complete_order.lop_signature.vs,
        fill_amount=fill_amount,
        taker_traits=build_taker_traits(len(complete_order.interaction)),
        interaction=complete_order.interaction,
    )


class OptionOrderBuilder:
    """Builds complete, dual-signed option orders for one maker's signer.

    Example:
        ```python
        verifier = OptionVerifierClient(rpc_url, options_nft_address)
        options_domain = create_option_domain(options_nft_address, chain_id)
        builder = OptionOrderBuilder(
            signer=LocalTypedDataSigner(private_key),
            hash_manager=OrderHashManager(verifier, options_domain),
            order_domain=create_order_domain(lop_address, chain_id),
        )
        complete = await builder.build_complete_option(OptionOrderRequest(...))
        fill_args = prepare_fill(complete, complete.order.making_amount)
        ```
    """

    def __init__(
        self,
        signer: TypedDataSigner,
        hash_manager: OrderHashManager,
        order_domain: EIP712Domain,
        nonce_manager: Optional[NonceManager] = None,
        token_reader: Optional[PermitTokenReader] = None,
        max_salt_attempts: int = DEFAULT_MAX_ATTEMPTS,
        signing_timeout: Optional[float] = None,
    ):
        """Initialize the builder.

        Args:
            signer: Maker's signer
            hash_manager: Hash manager bound to the option verifier
            order_domain: LOP domain (``create_order_domain``)
            nonce_manager: Required for ``UniquenessScheme.SEQUENTIAL_NONCE``
            token_reader: Required for permit orders
            max_salt_attempts: Salt search budget per order
            signing_timeout: Seconds allowed per signer call (None: unbounded)
        """
        self.signer = signer
        self.hash_manager = hash_manager
        self.order_domain = order_domain
        self.options_domain = hash_manager.options_domain
        self.nonce_manager = nonce_manager
        self.token_reader = token_reader
        self.max_salt_attempts = max_salt_attempts
        self.signing_timeout = signing_timeout

    @property
    def verifier_address(self) -> str:
        return self.options_domain["verifyingContract"]

    async def _bounded(self, awaitable: Awaitable[T]) -> T:
        if self.signing_timeout is None:
            return await awaitable
        return await asyncio.wait_for(awaitable, timeout=self.signing_timeout)

    async def validate(self, maker: str, params: OptionParams, salt: int) -> ValidationResult:
        return await self.hash_manager.validate(maker, params, salt)

    async def _choose_salt(
        self, maker: str, params: OptionParams, request: OptionOrderRequest
    ) -> int:
        if request.scheme is UniquenessScheme.SEQUENTIAL_NONCE:
            if self.nonce_manager is None:
                raise InvalidParameter("scheme", "sequential nonces need a nonce manager")
            if request.salt is None:
                salt = await self.nonce_manager.get_next_nonce(maker)
            else:
                salt = request.salt
                if not await self.nonce_manager.is_nonce_available(maker, salt):
                    raise InvalidParameter("salt", f"nonce {salt} already consumed")
            await self.hash_manager.ensure_available(maker, params, salt)
            return salt

        if request.salt is None:
            salt = await self.hash_manager.find_available_salt(
                maker, params, self.max_salt_attempts
            )
            logger.info("Auto-generated salt %s for maker %s", salt, maker)
            return salt
        await self.hash_manager.ensure_available(maker, params, request.salt)
        return request.salt

    async def _sign_permit(self, maker: str, params: OptionParams) -> PermitSignature:
        if self.token_reader is None:
            raise InvalidParameter("use_permit", "permit orders need a token reader")
        token = params.underlying_asset
        token_name = await self.token_reader.get_token_name(token)
        nonce = await self.token_reader.get_permit_nonce(token, maker)
        return await self._bounded(
            sign_permit(
                self.signer,
                token_address=token,
                token_name=token_name,
                spender=self.verifier_address,
                value=params.option_amount,
                nonce=nonce,
                deadline=params.expiry,
                chain_id=self.options_domain["chainId"],
            )
        )

    async def build_complete_option(self, request: OptionOrderRequest) -> CompleteOrder:
        """Build, sign and package one option order.

        No state is mutated; the only external effects are verifier reads and
        signer calls.

        Raises:
            InvalidAddressFormat: If any address is malformed
            InvalidParameter: If the option parameters fail validation
            DigestCollision: If a caller-supplied salt is already used
            SaltExhaustion: If no free salt was found
            VerifierUnavailable: If the verifier could not be reached
            SignatureMismatch: If the signer signed as someone else or returned
                an unrecoverable signature
        """
        maker = canonical_address(await self._bounded(self.signer.get_address()), "maker")
        params = request.option_params()

        error = self.hash_manager.check_parameters(
            maker, params, request.salt if request.salt is not None else 0
        )
        if error is not None:
            raise error
        if params.premium < 0:
            raise InvalidParameter("premium", "must not be negative")

        params = replace(
            params,
            underlying_asset=canonical_address(params.underlying_asset, "underlying_asset"),
            strike_asset=canonical_address(params.strike_asset, "strike_asset"),
        )
        salt = await self._choose_salt(maker, params, request)
        params = params.with_salt(salt)

        lop_nonce = request.lop_nonce if request.lop_nonce is not None else generate_random_nonce()
        built = build_order(
            OrderRequest(
                maker=maker,
                maker_asset=request.dummy_token_address,
                taker_asset=request.strike_asset,
                making_amount=request.option_amount,
                taking_amount=request.premium,
                flags=request.flags,
                lop_nonce=lop_nonce,
                custom_maker_traits=request.custom_maker_traits,
            )
        )

        lop_signature = await self._bounded(
            sign_order(self.signer, built.order, self.order_domain, built.original_addresses)
        )
        option_signature = await self._bounded(
            sign_option_params(self.signer, params, self.options_domain, salt)
        )

        digest = self.hash_manager.compute_digest(maker, params, salt)
        try:
            recovered = recover_signer(digest, option_signature)
        except (BadSignature, ValidationError) as e:
            raise SignatureMismatch(maker, "<unrecoverable>") from e
        if recovered.lower() != maker.lower():
            raise SignatureMismatch(expected=maker, recovered=recovered)

        permit = await self._sign_permit(maker, params) if request.use_permit else None
        interaction = build_interaction_payload(
            maker, params, option_signature, self.verifier_address, permit
        )
        schema = OPTION_INTERACTION_PERMIT_V1 if permit else OPTION_INTERACTION_V1

        logger.info(
            "Built option order for maker %s: salt=%s digest=0x%s",
            maker, salt, digest.hex(),
        )
        return CompleteOrder(
            maker=maker,
            order=built.order,
            order_tuple=built.order_tuple,
            original_addresses=built.original_addresses,
            option_params=params,
            lop_signature=lop_signature,
            option_signature=option_signature,
            interaction=interaction,
            interaction_schema=schema.schema_id,
            option_digest=digest,
            lop_nonce=lop_nonce,
            scheme=request.scheme,
            permit_signature=permit,
        )

    def prepare_fill(self, complete_order: CompleteOrder, fill_amount: int) -> FillArgs:
        return prepare_fill(complete_order, fill_amount)
