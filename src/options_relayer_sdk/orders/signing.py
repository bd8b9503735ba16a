"""EIP-712 signing for LOP orders, option payloads and permits.

Provides signing functions that work with any wallet type through the
TypedDataSigner protocol:
- LocalTypedDataSigner (eth_account, direct private key)
- Remote wallets (MetaMask, custodial signers, etc.)
"""

import logging
from typing import Any, Dict, Protocol

from eth_account import Account
from eth_keys.exceptions import BadSignature, ValidationError

from .codec import build_domain, canonical_address
from .hashing import compute_option_digest, compute_order_digest, recover_signer
from .types import (
    OPTION_TYPES,
    ORDER_TYPES,
    PERMIT_TYPES,
    EIP712Domain,
    OptionParams,
    Order,
    OriginalAddresses,
    PermitSignature,
    Signature,
)
from .utils import PERMIT_DOMAIN_VERSION, strip_hex_prefix

logger = logging.getLogger(__name__)


class TypedDataSigner(Protocol):
    """Protocol for signers that can sign EIP-712 typed data."""

    async def get_address(self) -> str:
        """Get the signer's address."""
        ...

    async def sign_typed_data(self, params: Dict[str, Any]) -> str:
        """Sign EIP-712 typed data.

        Args:
            params: Dict with domain, types, primaryType, and message

        Returns:
            Signature as hex string
        """
        ...


class LocalTypedDataSigner:
    """TypedDataSigner backed by a local private key."""

    def __init__(self, private_key: str):
        """Initialize the signer.

        Args:
            private_key: Private key (hex string with or without 0x prefix)
        """
        if not private_key.startswith("0x"):
            private_key = f"0x{private_key}"
        self._account = Account.from_key(private_key)

    @property
    def address(self) -> str:
        return self._account.address

    async def get_address(self) -> str:
        return self._account.address

    async def sign_typed_data(self, params: Dict[str, Any]) -> str:
        signed_message = self._account.sign_typed_data(
            domain_data=params["domain"],
            message_types=params["types"],
            message_data=params["message"],
        )
        return "0x" + bytes(signed_message.signature).hex()


def split_signature(signature: str) -> Signature:
    """Split a packed signature into ``r``, ``s`` and ``v``.

    Accepts 65-byte ``r || s || v`` (``v`` as 0/1 or 27/28) and 64-byte
    EIP-2098 ``r || vs`` encodings.

    Raises:
        ValueError: If the signature has the wrong length or an invalid v
    """
    raw = bytes.fromhex(strip_hex_prefix(signature))
    if len(raw) == 64:
        vs = int.from_bytes(raw[32:], "big")
        v = 28 if vs >> 255 else 27
        s = (vs & ((1 << 255) - 1)).to_bytes(32, "big")
        return Signature(r=raw[:32], s=s, v=v)
    if len(raw) != 65:
        raise ValueError(f"Invalid signature length: {len(raw)} bytes")
    v = raw[64]
    if v < 27:
        v += 27
    if v not in (27, 28):
        raise ValueError(f"Invalid signature v: {raw[64]}")
    return Signature(r=raw[:32], s=raw[32:64], v=v)


def order_message(order: Order, original_addresses: OriginalAddresses) -> Dict[str, Any]:
    """LOP order message. Uses canonical addresses, never the padded words."""
    return {
        "salt": order.salt,
        "maker": original_addresses.maker,
        "receiver": original_addresses.receiver,
        "makerAsset": original_addresses.maker_asset,
        "takerAsset": original_addresses.taker_asset,
        "makingAmount": order.making_amount,
        "takingAmount": order.taking_amount,
        "makerTraits": order.maker_traits,
    }


def option_message(maker: str, params: OptionParams, salt: int) -> Dict[str, Any]:
    """Option message. ``option_amount`` is signed as ``amount``."""
    return {
        "underlyingAsset": canonical_address(params.underlying_asset, "underlying_asset"),
        "strikeAsset": canonical_address(params.strike_asset, "strike_asset"),
        "maker": canonical_address(maker, "maker"),
        "strikePrice": params.strike_price,
        "expiry": params.expiry,
        "amount": params.option_amount,
        "salt": salt,
    }


async def sign_order(
    signer: TypedDataSigner,
    order: Order,
    domain: EIP712Domain,
    original_addresses: OriginalAddresses,
) -> Signature:
    """Sign a LOP order under the order domain.

    Args:
        signer: Signer that implements TypedDataSigner protocol
        order: Order built by ``build_order``
        domain: Order domain (``create_order_domain``)
        original_addresses: Canonical addresses from ``build_order``

    Returns:
        Signature; ``vs`` gives the compact form for calldata
    """
    signature = await signer.sign_typed_data(
        {
            "domain": domain,
            "types": ORDER_TYPES,
            "primaryType": "Order",
            "message": order_message(order, original_addresses),
        }
    )
    return split_signature(signature)


async def sign_option_params(
    signer: TypedDataSigner,
    params: OptionParams,
    options_domain: EIP712Domain,
    salt: int,
) -> Signature:
    """Sign the option payload with ``salt`` as its uniqueness field.

    The maker in the struct is the signer's own address.
    """
    maker = await signer.get_address()
    signature = await signer.sign_typed_data(
        {
            "domain": options_domain,
            "types": OPTION_TYPES,
            "primaryType": "Option",
            "message": option_message(maker, params, salt),
        }
    )
    return split_signature(signature)


async def sign_permit(
    signer: TypedDataSigner,
    token_address: str,
    token_name: str,
    spender: str,
    value: int,
    nonce: int,
    deadline: int,
    chain_id: int,
) -> PermitSignature:
    """Sign an EIP-2612 permit so ``spender`` can pull ``value`` tokens.

    Args:
        signer: Token owner
        token_address: ERC20 token with permit support
        token_name: Token ``name()``, part of the token's domain
        spender: Address allowed to pull the tokens (the option verifier)
        value: Allowance in base units
        nonce: Owner's current permit nonce on the token
        deadline: Permit expiry (the option expiry)
        chain_id: Chain ID

    Returns:
        PermitSignature
    """
    owner = await signer.get_address()
    domain = build_domain(token_name, PERMIT_DOMAIN_VERSION, chain_id, token_address)
    signature = await signer.sign_typed_data(
        {
            "domain": domain,
            "types": PERMIT_TYPES,
            "primaryType": "Permit",
            "message": {
                "owner": canonical_address(owner, "owner"),
                "spender": canonical_address(spender, "spender"),
                "value": value,
                "nonce": nonce,
                "deadline": deadline,
            },
        }
    )
    parts = split_signature(signature)
    return PermitSignature(deadline=deadline, v=parts.v, r=parts.r, s=parts.s)


def verify_order_signature(
    order: Order,
    original_addresses: OriginalAddresses,
    signature: Signature,
    domain: EIP712Domain,
    expected_maker: str,
) -> bool:
    """Verify a LOP order signature locally (EOA signatures only).

    Returns:
        True if the signature recovers to expected_maker
    """
    digest = compute_order_digest(domain, order, original_addresses)
    try:
        recovered = recover_signer(digest, signature)
    except (BadSignature, ValidationError) as e:
        logger.debug("Order signature recovery failed: %s", e)
        return False
    return recovered.lower() == expected_maker.lower()


def verify_option_signature(
    maker: str,
    params: OptionParams,
    salt: int,
    signature: Signature,
    options_domain: EIP712Domain,
) -> bool:
    """Verify that the option signature recovers to ``maker``.

    This is the check the verifier performs on fill.
    """
    digest = compute_option_digest(options_domain, maker, params, salt)
    try:
        recovered = recover_signer(digest, signature)
    except (BadSignature, ValidationError) as e:
        logger.debug("Option signature recovery failed: %s", e)
        return False
    return recovered.lower() == maker.lower()
