"""Address and EIP-712 domain codec.

The limit order protocol takes addresses as uint256 words in calldata while
EIP-712 signing uses canonical 20-byte addresses. Two domains are in play:
the LOP order domain and the option verifier domain.
"""

import re

from eth_abi import encode
from eth_utils import is_checksum_address, keccak, to_checksum_address

from ..errors import InvalidAddressFormat
from .types import EIP712Domain
from .utils import (
    OPTION_DOMAIN_NAME,
    OPTION_DOMAIN_VERSION,
    ORDER_DOMAIN_NAME,
    ORDER_DOMAIN_VERSION,
    strip_hex_prefix,
)

_HEX40 = re.compile(r"^[0-9a-f]{40}$")
_HEX64 = re.compile(r"^[0-9a-f]{64}$")

DOMAIN_TYPE_STR = b"EIP712Domain(string name,string version,uint256 chainId,address verifyingContract)"
DOMAIN_TYPEHASH = keccak(DOMAIN_TYPE_STR)


def encode_address(addr: str) -> str:
    """Encode an address as a 0x-prefixed, left-padded 32-byte word.

    Args:
        addr: Address with or without 0x prefix, any case

    Returns:
        "0x" followed by 64 lowercase hex characters

    Raises:
        InvalidAddressFormat: If the input is not 40 hex characters
    """
    if not isinstance(addr, str):
        raise InvalidAddressFormat(addr)
    raw = strip_hex_prefix(addr.lower())
    if not _HEX40.match(raw):
        raise InvalidAddressFormat(addr)
    return "0x" + raw.rjust(64, "0")


def decode_address(word: str) -> str:
    """Decode a 32-byte word back into a checksummed address.

    Raises:
        InvalidAddressFormat: If the word is not 64 hex characters or the
            upper 12 bytes are not zero
    """
    if not isinstance(word, str):
        raise InvalidAddressFormat(word)
    raw = strip_hex_prefix(word.lower())
    if not _HEX64.match(raw) or raw[:24] != "0" * 24:
        raise InvalidAddressFormat(word)
    return to_checksum_address("0x" + raw[24:])


def address_to_int(addr: str) -> int:
    """Address as the uint256 the LOP expects in an order tuple."""
    return int(encode_address(addr), 16)


def canonical_address(addr: str, field: str = "address") -> str:
    """Validate and checksum an address for signing.

    Raises:
        InvalidAddressFormat: If the address is malformed
    """
    if not isinstance(addr, str) or not _HEX40.match(strip_hex_prefix(addr.lower())):
        raise InvalidAddressFormat(addr, field)
    body = strip_hex_prefix(addr)
    prefixed = "0x" + body
    # Mixed case must carry a valid checksum
    mixed_case = body != body.lower() and body != body.upper()
    if mixed_case and not is_checksum_address(prefixed):
        raise InvalidAddressFormat(addr, field)
    return to_checksum_address(prefixed)


def build_domain(
    name: str, version: str, chain_id: int, verifying_contract: str
) -> EIP712Domain:
    """Create an EIP-712 domain.

    Raises:
        InvalidAddressFormat: If verifying_contract is malformed
    """
    return {
        "name": name,
        "version": version,
        "chainId": int(chain_id),
        "verifyingContract": canonical_address(verifying_contract, "verifyingContract"),
    }


def create_order_domain(lop_address: str, chain_id: int) -> EIP712Domain:
    """EIP-712 domain of the limit order protocol."""
    return build_domain(ORDER_DOMAIN_NAME, ORDER_DOMAIN_VERSION, chain_id, lop_address)


def create_option_domain(verifier_address: str, chain_id: int) -> EIP712Domain:
    """EIP-712 domain of the option NFT verifier."""
    return build_domain(OPTION_DOMAIN_NAME, OPTION_DOMAIN_VERSION, chain_id, verifier_address)


def domain_separator(domain: EIP712Domain) -> bytes:
    """Compute the EIP-712 domain separator the verifying contract stores."""
    return keccak(
        encode(
            ["bytes32", "bytes32", "bytes32", "uint256", "address"],
            [
                DOMAIN_TYPEHASH,
                keccak(text=domain["name"]),
                keccak(text=domain["version"]),
                domain["chainId"],
                domain["verifyingContract"],
            ],
        )
    )
