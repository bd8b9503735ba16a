"""Order and option types.

Amounts are Python ints in memory and decimal strings on the wire.
"""

from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Optional, Tuple, TypedDict

from ..errors import OptionsRelayerError


class EIP712Domain(TypedDict):
    """EIP-712 domain separator."""

    name: str
    version: str
    chainId: int
    verifyingContract: str


class UniquenessScheme(str, Enum):
    """How the option struct's uniqueness field is chosen."""

    SALT = "salt"
    """Random salt checked against the verifier. Safe for concurrent makers."""

    SEQUENTIAL_NONCE = "sequential-nonce"
    """Legacy per-maker counter. Callers must serialize per maker."""


@dataclass(frozen=True)
class MakerTraitFlags:
    """Boolean order flags packed into the maker traits word."""

    no_partial_fills: bool = False
    allow_multiple_fills: bool = False
    pre_interaction: bool = False
    post_interaction: bool = False
    has_extension: bool = False
    use_permit2: bool = False
    unwrap_weth: bool = False


# Single-fill orders: the LOP then uses the bit invalidator keyed by the nonce
DEFAULT_OPTION_TRAITS = MakerTraitFlags(no_partial_fills=True, allow_multiple_fills=False)


@dataclass
class Order:
    """Limit order in its on-chain form (addresses as 32-byte words)."""

    salt: int
    """LOP-level salt. Independent of the option salt."""

    maker: str
    """Maker address as a 0x-prefixed 32-byte word."""

    receiver: str
    maker_asset: str
    taker_asset: str

    making_amount: int
    taking_amount: int

    maker_traits: int
    """Flags and 40-bit nonce, see ``traits.encode_traits``."""


@dataclass(frozen=True)
class OriginalAddresses:
    """Canonical 20-byte addresses used for EIP-712 signing."""

    maker: str
    receiver: str
    maker_asset: str
    taker_asset: str


@dataclass
class BuiltOrder:
    """Result of ``build_order``."""

    order: Order
    order_tuple: Tuple[int, int, int, int, int, int, int, int]
    """Calldata form: every field as uint256."""

    original_addresses: OriginalAddresses


@dataclass
class OrderRequest:
    """Parameters for a generic LOP order."""

    maker: str
    maker_asset: str
    taker_asset: str
    making_amount: int
    taking_amount: int
    receiver: Optional[str] = None
    """Defaults to the maker."""

    flags: MakerTraitFlags = field(default_factory=MakerTraitFlags)
    lop_nonce: int = 0
    custom_maker_traits: Optional[int] = None
    """Pre-built traits word; overrides ``flags`` and ``lop_nonce``."""

    salt: Optional[int] = None
    """Random below 2^53 when omitted."""


@dataclass
class OptionParams:
    """Option payload signed under the option domain."""

    underlying_asset: str
    strike_asset: str

    strike_price: int
    """Strike in strike-asset base units (e.g., 2000000000 = 2000 USDC)."""

    option_amount: int
    """Underlying amount in base units (e.g., 10**18 = 1 ETH)."""

    premium: int
    """Premium the taker pays, in strike-asset base units."""

    expiry: int
    """Unix timestamp in seconds."""

    salt: Optional[int] = None
    """Replay-protection key bound into the option digest."""

    def with_salt(self, salt: int) -> "OptionParams":
        return replace(self, salt=salt)


@dataclass(frozen=True)
class Signature:
    """ECDSA signature over an EIP-712 digest."""

    r: bytes
    s: bytes
    v: int
    """27 or 28."""

    @property
    def vs(self) -> bytes:
        """EIP-2098 compact form: ``s`` with the parity of ``v`` in the top bit."""
        vs_int = int.from_bytes(self.s, "big")
        if self.v == 28:
            vs_int |= 1 << 255
        return vs_int.to_bytes(32, "big")

    @property
    def signature(self) -> str:
        """65-byte packed ``r || s || v`` hex string."""
        return "0x" + (self.r + self.s + bytes([self.v])).hex()


@dataclass(frozen=True)
class PermitSignature:
    """EIP-2612 permit letting the verifier pull the underlying collateral."""

    deadline: int
    v: int
    r: bytes
    s: bytes


@dataclass
class OptionOrderRequest:
    """Everything needed to build, sign and package one option order."""

    underlying_asset: str
    strike_asset: str
    dummy_token_address: str
    """Placeholder maker asset; the LOP transfers it while the verifier mints."""

    strike_price: int
    option_amount: int
    premium: int
    expiry: int

    salt: Optional[int] = None
    """Option salt. Found via the hash manager when omitted."""

    lop_nonce: Optional[int] = None
    """Traits nonce. Random 40-bit value when omitted."""

    flags: MakerTraitFlags = DEFAULT_OPTION_TRAITS
    custom_maker_traits: Optional[int] = None

    scheme: UniquenessScheme = UniquenessScheme.SALT
    use_permit: bool = False

    def option_params(self) -> OptionParams:
        return OptionParams(
            underlying_asset=self.underlying_asset,
            strike_asset=self.strike_asset,
            strike_price=self.strike_price,
            option_amount=self.option_amount,
            premium=self.premium,
            expiry=self.expiry,
            salt=self.salt,
        )


@dataclass
class OrderConfig:
    """One prepared order from ``create_parallel_orders``."""

    maker: str
    option_params: OptionParams
    salt: int
    digest: bytes


@dataclass
class CompleteOrder:
    """A fully signed option order, ready to persist and later fill."""

    maker: str
    order: Order
    order_tuple: Tuple[int, int, int, int, int, int, int, int]
    original_addresses: OriginalAddresses
    option_params: OptionParams
    """Includes the chosen salt."""

    lop_signature: Signature
    option_signature: Signature
    interaction: bytes
    interaction_schema: str
    option_digest: bytes
    lop_nonce: int
    scheme: UniquenessScheme = UniquenessScheme.SALT
    permit_signature: Optional[PermitSignature] = None

    @property
    def salt(self) -> int:
        return self.option_params.salt  # type: ignore[return-value]


@dataclass
class FillArgs:
    """Arguments for ``fillOrderArgs(order, r, vs, amount, takerTraits, args)``."""

    order_tuple: Tuple[int, int, int, int, int, int, int, int]
    r: bytes
    vs: bytes
    fill_amount: int
    taker_traits: int
    interaction: bytes


@dataclass
class ValidationResult:
    """Outcome of ``OrderHashManager.validate``. Holds the first failure only."""

    error: Optional[OptionsRelayerError] = None

    @property
    def ok(self) -> bool:
        return self.error is None

    @property
    def reason(self) -> Optional[str]:
        return str(self.error) if self.error else None


EIP712_DOMAIN_FIELDS = [
    {"name": "name", "type": "string"},
    {"name": "version", "type": "string"},
    {"name": "chainId", "type": "uint256"},
    {"name": "verifyingContract", "type": "address"},
]

# EIP-712 types for the LOP order
ORDER_TYPES = {
    "Order": [
        {"name": "salt", "type": "uint256"},
        {"name": "maker", "type": "address"},
        {"name": "receiver", "type": "address"},
        {"name": "makerAsset", "type": "address"},
        {"name": "takerAsset", "type": "address"},
        {"name": "makingAmount", "type": "uint256"},
        {"name": "takingAmount", "type": "uint256"},
        {"name": "makerTraits", "type": "uint256"},
    ],
}

# EIP-712 types for the option payload (field order fixed by the verifier)
OPTION_TYPES = {
    "Option": [
        {"name": "underlyingAsset", "type": "address"},
        {"name": "strikeAsset", "type": "address"},
        {"name": "maker", "type": "address"},
        {"name": "strikePrice", "type": "uint256"},
        {"name": "expiry", "type": "uint256"},
        {"name": "amount", "type": "uint256"},
        {"name": "salt", "type": "uint256"},
    ],
}

# EIP-2612
PERMIT_TYPES = {
    "Permit": [
        {"name": "owner", "type": "address"},
        {"name": "spender", "type": "address"},
        {"name": "value", "type": "uint256"},
        {"name": "nonce", "type": "uint256"},
        {"name": "deadline", "type": "uint256"},
    ],
}
