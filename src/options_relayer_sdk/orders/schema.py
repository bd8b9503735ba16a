"""Interaction payload schemas.

The fill callback decodes the interaction bytes with a hard-coded tuple
layout. Each layout is declared once here and both encode and decode are
derived from it, keyed by a versioned schema id.

Payload = verifier address (20 bytes) || abi.encode(fields...)
"""

from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Sequence, Tuple

from eth_abi import decode, encode
from eth_utils import to_checksum_address

from ..errors import InteractionDecodeError
from .codec import canonical_address
from .types import OptionParams, PermitSignature, Signature

ADDRESS_BYTES = 20
WORD_BYTES = 32


@dataclass(frozen=True)
class SchemaField:
    name: str
    abi_type: str


@dataclass(frozen=True)
class InteractionSchema:
    """Ordered field list for one payload layout. All fields are static types."""

    schema_id: str
    fields: Tuple[SchemaField, ...]

    @property
    def abi_types(self) -> List[str]:
        return [f.abi_type for f in self.fields]

    @property
    def payload_length(self) -> int:
        """Total payload bytes, including the 20-byte verifier prefix."""
        return ADDRESS_BYTES + WORD_BYTES * len(self.fields)

    def encode(self, verifier_address: str, values: Dict[str, Any]) -> bytes:
        """Encode ``values`` (keyed by field name) behind the verifier address.

        Raises:
            KeyError: If a field is missing from values
        """
        verifier = bytes.fromhex(canonical_address(verifier_address, "verifier")[2:])
        body = encode(self.abi_types, [values[f.name] for f in self.fields])
        return verifier + body

    def decode(self, payload: bytes) -> Tuple[str, Dict[str, Any]]:
        """Decode a payload into ``(verifier_address, values)``.

        Raises:
            InteractionDecodeError: If the length does not match this schema
        """
        if len(payload) != self.payload_length:
            raise InteractionDecodeError(
                f"{self.schema_id} expects {self.payload_length} bytes, got {len(payload)}"
            )
        verifier = to_checksum_address(payload[:ADDRESS_BYTES])
        decoded = decode(self.abi_types, payload[ADDRESS_BYTES:])
        return verifier, {f.name: v for f, v in zip(self.fields, decoded)}


_OPTION_FIELDS = (
    SchemaField("maker", "address"),
    SchemaField("underlyingAsset", "address"),
    SchemaField("strikeAsset", "address"),
    SchemaField("strikePrice", "uint256"),
    SchemaField("expiry", "uint256"),
    SchemaField("optionAmount", "uint256"),
    SchemaField("salt", "uint256"),
    SchemaField("v", "uint8"),
    SchemaField("r", "bytes32"),
    SchemaField("s", "bytes32"),
)

_PERMIT_FIELDS = (
    SchemaField("usePermit", "bool"),
    SchemaField("permitDeadline", "uint256"),
    SchemaField("permitV", "uint8"),
    SchemaField("permitR", "bytes32"),
    SchemaField("permitS", "bytes32"),
)

OPTION_INTERACTION_V1 = InteractionSchema("option-interaction/1", _OPTION_FIELDS)
OPTION_INTERACTION_PERMIT_V1 = InteractionSchema(
    "option-interaction-permit/1", _OPTION_FIELDS + _PERMIT_FIELDS
)

SCHEMAS: Dict[str, InteractionSchema] = {
    s.schema_id: s for s in (OPTION_INTERACTION_V1, OPTION_INTERACTION_PERMIT_V1)
}


@dataclass
class InteractionPayload:
    """Decoded interaction bytes."""

    schema_id: str
    verifier_address: str
    maker: str
    option_params: OptionParams
    """Premium is not carried in the payload and decodes as 0."""

    signature: Signature
    permit: Optional[PermitSignature] = None


def build_interaction_payload(
    maker: str,
    params: OptionParams,
    option_signature: Signature,
    verifier_address: str,
    permit: Optional[PermitSignature] = None,
) -> bytes:
    """Build the interaction bytes decoded by the verifier's fill callback.

    Args:
        maker: Maker address
        params: Option parameters; ``params.salt`` must be set
        option_signature: Signature from ``sign_option_params``
        verifier_address: Option verifier contract
        permit: Optional collateral permit; switches to the permit schema

    Returns:
        Interaction payload bytes

    Raises:
        ValueError: If params.salt is not set
        InvalidAddressFormat: If any address is malformed
    """
    if params.salt is None:
        raise ValueError("Option params must carry a salt")
    values: Dict[str, Any] = {
        "maker": canonical_address(maker, "maker"),
        "underlyingAsset": canonical_address(params.underlying_asset, "underlying_asset"),
        "strikeAsset": canonical_address(params.strike_asset, "strike_asset"),
        "strikePrice": params.strike_price,
        "expiry": params.expiry,
        "optionAmount": params.option_amount,
        "salt": params.salt,
        "v": option_signature.v,
        "r": option_signature.r,
        "s": option_signature.s,
    }
    if permit is None:
        return OPTION_INTERACTION_V1.encode(verifier_address, values)

    values.update(
        usePermit=True,
        permitDeadline=permit.deadline,
        permitV=permit.v,
        permitR=permit.r,
        permitS=permit.s,
    )
    return OPTION_INTERACTION_PERMIT_V1.encode(verifier_address, values)


def schema_for_payload(payload: bytes, candidates: Sequence[InteractionSchema] = ()) -> InteractionSchema:
    """Pick the schema whose static length matches ``payload``.

    Raises:
        InteractionDecodeError: If no schema matches
    """
    for schema in candidates or SCHEMAS.values():
        if schema.payload_length == len(payload):
            return schema
    raise InteractionDecodeError(f"No interaction schema matches {len(payload)} bytes")


def decode_interaction_payload(
    payload: bytes, schema_id: Optional[str] = None
) -> InteractionPayload:
    """Decode interaction bytes back into option parameters and signatures.

    Args:
        payload: Interaction bytes
        schema_id: Expected schema; inferred from the length when omitted

    Raises:
        InteractionDecodeError: If the payload does not match the schema
    """
    if schema_id is not None:
        if schema_id not in SCHEMAS:
            raise InteractionDecodeError(f"Unknown interaction schema: {schema_id}")
        schema = SCHEMAS[schema_id]
    else:
        schema = schema_for_payload(payload)

    verifier, values = schema.decode(payload)
    params = OptionParams(
        underlying_asset=to_checksum_address(values["underlyingAsset"]),
        strike_asset=to_checksum_address(values["strikeAsset"]),
        strike_price=values["strikePrice"],
        option_amount=values["optionAmount"],
        premium=0,
        expiry=values["expiry"],
        salt=values["salt"],
    )
    permit = None
    if values.get("usePermit"):
        permit = PermitSignature(
            deadline=values["permitDeadline"],
            v=values["permitV"],
            r=values["permitR"],
            s=values["permitS"],
        )
    return InteractionPayload(
        schema_id=schema.schema_id,
        verifier_address=verifier,
        maker=to_checksum_address(values["maker"]),
        option_params=params,
        signature=Signature(r=values["r"], s=values["s"], v=values["v"]),
        permit=permit,
    )
