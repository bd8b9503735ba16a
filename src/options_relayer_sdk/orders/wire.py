"""JSON wire format for orders, option params and signatures.

- Addresses: 0x-prefixed 40-hex strings
- Integer amounts: decimal strings (never JSON numbers)
- expiry, v, permit deadline: JSON integers
- r, s, vs and byte payloads: 0x-prefixed hex
"""

import re
from typing import Any, Dict, Optional

from ..errors import InvalidParameter
from .codec import canonical_address
from .types import (
    CompleteOrder,
    FillArgs,
    OptionParams,
    Order,
    OriginalAddresses,
    PermitSignature,
    Signature,
    UniquenessScheme,
)
from .utils import strip_hex_prefix

_DECIMAL = re.compile(r"^[0-9]+$")
_HEX32 = re.compile(r"^0x[0-9a-fA-F]{64}$")


def _hex(value: bytes) -> str:
    return "0x" + value.hex()


def _bytes(value: str) -> bytes:
    return bytes.fromhex(strip_hex_prefix(value))


def parse_decimal(field: str, value: Any) -> int:
    """Parse a decimal-string amount.

    Raises:
        InvalidParameter: If value is not a non-negative decimal string
    """
    if not isinstance(value, str) or not _DECIMAL.match(value):
        raise InvalidParameter(field, f"expected a decimal string, got {value!r}")
    return int(value)


def _parse_word(field: str, value: Any) -> bytes:
    if not isinstance(value, str) or not _HEX32.match(value):
        raise InvalidParameter(field, f"expected 0x-prefixed 32-byte hex, got {value!r}")
    return _bytes(value)


def _parse_v(field: str, value: Any) -> int:
    if value not in (27, 28) or isinstance(value, bool):
        raise InvalidParameter(field, f"expected 27 or 28, got {value!r}")
    return value


def option_params_to_wire(params: OptionParams) -> Dict[str, Any]:
    wire: Dict[str, Any] = {
        "underlyingAsset": params.underlying_asset,
        "strikeAsset": params.strike_asset,
        "strikePrice": str(params.strike_price),
        "optionAmount": str(params.option_amount),
        "premium": str(params.premium),
        "expiry": params.expiry,
    }
    if params.salt is not None:
        wire["salt"] = str(params.salt)
    return wire


def option_params_from_wire(data: Dict[str, Any]) -> OptionParams:
    """Parse option params from their wire form.

    Raises:
        InvalidAddressFormat: If an address is malformed
        InvalidParameter: If an amount or expiry has the wrong type
    """
    expiry = data.get("expiry")
    if not isinstance(expiry, int) or isinstance(expiry, bool):
        raise InvalidParameter("expiry", f"expected integer seconds, got {expiry!r}")
    salt = data.get("salt")
    return OptionParams(
        underlying_asset=canonical_address(data.get("underlyingAsset"), "underlyingAsset"),
        strike_asset=canonical_address(data.get("strikeAsset"), "strikeAsset"),
        strike_price=parse_decimal("strikePrice", data.get("strikePrice")),
        option_amount=parse_decimal("optionAmount", data.get("optionAmount")),
        premium=parse_decimal("premium", data.get("premium")),
        expiry=expiry,
        salt=parse_decimal("salt", salt) if salt is not None else None,
    )


def signature_to_wire(signature: Signature) -> Dict[str, Any]:
    return {
        "r": _hex(signature.r),
        "s": _hex(signature.s),
        "v": signature.v,
        "vs": _hex(signature.vs),
    }


def signature_from_wire(data: Dict[str, Any]) -> Signature:
    """Parse ``{r, s, v}``; any ``vs`` is recomputed, not trusted.

    Raises:
        InvalidParameter: If a component is malformed
    """
    return Signature(
        r=_parse_word("r", data.get("r")),
        s=_parse_word("s", data.get("s")),
        v=_parse_v("v", data.get("v")),
    )


def permit_to_wire(permit: PermitSignature) -> Dict[str, Any]:
    return {
        "deadline": permit.deadline,
        "v": permit.v,
        "r": _hex(permit.r),
        "s": _hex(permit.s),
    }


def permit_from_wire(data: Dict[str, Any]) -> PermitSignature:
    return PermitSignature(
        deadline=int(data["deadline"]),
        v=_parse_v("permit.v", data.get("v")),
        r=_parse_word("permit.r", data.get("r")),
        s=_parse_word("permit.s", data.get("s")),
    )


def order_to_wire(order: Order) -> Dict[str, Any]:
    return {
        "salt": str(order.salt),
        "maker": order.maker,
        "receiver": order.receiver,
        "makerAsset": order.maker_asset,
        "takerAsset": order.taker_asset,
        "makingAmount": str(order.making_amount),
        "takingAmount": str(order.taking_amount),
        "makerTraits": str(order.maker_traits),
    }


def order_from_wire(data: Dict[str, Any]) -> Order:
    return Order(
        salt=parse_decimal("salt", data.get("salt")),
        maker=data["maker"],
        receiver=data["receiver"],
        maker_asset=data["makerAsset"],
        taker_asset=data["takerAsset"],
        making_amount=parse_decimal("makingAmount", data.get("makingAmount")),
        taking_amount=parse_decimal("takingAmount", data.get("takingAmount")),
        maker_traits=parse_decimal("makerTraits", data.get("makerTraits")),
    )


def complete_order_to_wire(complete: CompleteOrder) -> Dict[str, Any]:
    """Serialize a complete order for the API and persistence layers."""
    wire: Dict[str, Any] = {
        "maker": complete.maker,
        "order": order_to_wire(complete.order),
        "orderTuple": [str(v) for v in complete.order_tuple],
        "originalAddresses": {
            "maker": complete.original_addresses.maker,
            "receiver": complete.original_addresses.receiver,
            "makerAsset": complete.original_addresses.maker_asset,
            "takerAsset": complete.original_addresses.taker_asset,
        },
        "optionParams": option_params_to_wire(complete.option_params),
        "lopSignature": signature_to_wire(complete.lop_signature),
        "optionSignature": signature_to_wire(complete.option_signature),
        "interaction": _hex(complete.interaction),
        "interactionSchema": complete.interaction_schema,
        "optionDigest": _hex(complete.option_digest),
        "lopNonce": str(complete.lop_nonce),
        "scheme": complete.scheme.value,
    }
    if complete.permit_signature is not None:
        wire["permitSignature"] = permit_to_wire(complete.permit_signature)
    return wire


def complete_order_from_wire(data: Dict[str, Any]) -> CompleteOrder:
    """Parse a complete order produced by ``complete_order_to_wire``.

    Raises:
        InvalidParameter: If a field is malformed
        InvalidAddressFormat: If an address is malformed
    """
    original = data["originalAddresses"]
    permit_data: Optional[Dict[str, Any]] = data.get("permitSignature")
    order_tuple = tuple(parse_decimal("orderTuple", v) for v in data["orderTuple"])
    if len(order_tuple) != 8:
        raise InvalidParameter("orderTuple", f"expected 8 fields, got {len(order_tuple)}")
    return CompleteOrder(
        maker=canonical_address(data["maker"], "maker"),
        order=order_from_wire(data["order"]),
        order_tuple=order_tuple,  # type: ignore[arg-type]
        original_addresses=OriginalAddresses(
            maker=canonical_address(original["maker"], "maker"),
            receiver=canonical_address(original["receiver"], "receiver"),
            maker_asset=canonical_address(original["makerAsset"], "makerAsset"),
            taker_asset=canonical_address(original["takerAsset"], "takerAsset"),
        ),
        option_params=option_params_from_wire(data["optionParams"]),
        lop_signature=signature_from_wire(data["lopSignature"]),
        option_signature=signature_from_wire(data["optionSignature"]),
        interaction=_bytes(data["interaction"]),
        interaction_schema=data["interactionSchema"],
        option_digest=_parse_word("optionDigest", data["optionDigest"]),
        lop_nonce=parse_decimal("lopNonce", data["lopNonce"]),
        scheme=UniquenessScheme(data.get("scheme", UniquenessScheme.SALT.value)),
        permit_signature=permit_from_wire(permit_data) if permit_data else None,
    )


def fill_args_to_wire(args: FillArgs) -> Dict[str, Any]:
    return {
        "orderTuple": [str(v) for v in args.order_tuple],
        "r": _hex(args.r),
        "vs": _hex(args.vs),
        "fillAmount": str(args.fill_amount),
        "takerTraits": str(args.taker_traits),
        "interaction": _hex(args.interaction),
    }
