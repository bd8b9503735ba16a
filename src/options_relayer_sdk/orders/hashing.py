"""EIP-712 struct hashes and digests.

These must match the verifying contracts byte for byte: a mismatch in field
order, type width or domain string only surfaces as a failed fill.
"""

from eth_abi import encode
from eth_keys import keys
from eth_utils import keccak

from .codec import canonical_address, domain_separator
from .types import EIP712Domain, OptionParams, Order, OriginalAddresses, Signature

EIP191_PREFIX = b"\x19\x01"

OPTION_TYPE_STR = b"Option(address underlyingAsset,address strikeAsset,address maker,uint256 strikePrice,uint256 expiry,uint256 amount,uint256 salt)"
OPTION_TYPEHASH = keccak(OPTION_TYPE_STR)

ORDER_TYPE_STR = b"Order(uint256 salt,address maker,address receiver,address makerAsset,address takerAsset,uint256 makingAmount,uint256 takingAmount,uint256 makerTraits)"
ORDER_TYPEHASH = keccak(ORDER_TYPE_STR)


def eip712_digest(domain: EIP712Domain, struct_hash: bytes) -> bytes:
    return keccak(EIP191_PREFIX + domain_separator(domain) + struct_hash)


def option_struct_hash(maker: str, params: OptionParams, salt: int) -> bytes:
    """Struct hash of the option payload for ``maker`` and ``salt``."""
    return keccak(
        encode(
            ["bytes32", "address", "address", "address", "uint256", "uint256", "uint256", "uint256"],
            [
                OPTION_TYPEHASH,
                canonical_address(params.underlying_asset, "underlying_asset"),
                canonical_address(params.strike_asset, "strike_asset"),
                canonical_address(maker, "maker"),
                params.strike_price,
                params.expiry,
                params.option_amount,
                salt,
            ],
        )
    )


def compute_option_digest(
    domain: EIP712Domain, maker: str, params: OptionParams, salt: int
) -> bytes:
    """Digest the verifier records as used once the option is minted."""
    return eip712_digest(domain, option_struct_hash(maker, params, salt))


def order_struct_hash(order: Order, original_addresses: OriginalAddresses) -> bytes:
    return keccak(
        encode(
            ["bytes32", "uint256", "address", "address", "address", "address", "uint256", "uint256", "uint256"],
            [
                ORDER_TYPEHASH,
                order.salt,
                original_addresses.maker,
                original_addresses.receiver,
                original_addresses.maker_asset,
                original_addresses.taker_asset,
                order.making_amount,
                order.taking_amount,
                order.maker_traits,
            ],
        )
    )


def compute_order_digest(
    domain: EIP712Domain, order: Order, original_addresses: OriginalAddresses
) -> bytes:
    """LOP order hash. Also the key orders are stored under."""
    return eip712_digest(domain, order_struct_hash(order, original_addresses))


def recover_signer(digest: bytes, signature: Signature) -> str:
    """Recover the checksummed signer address of a digest.

    Raises:
        eth_keys.exceptions.BadSignature: If no key recovers from the signature
        eth_utils.ValidationError: If v, r or s are out of range
    """
    sig = keys.Signature(
        vrs=(
            signature.v - 27,
            int.from_bytes(signature.r, "big"),
            int.from_bytes(signature.s, "big"),
        )
    )
    return sig.recover_public_key_from_msg_hash(digest).to_checksum_address()
