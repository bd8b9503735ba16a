"""Options relayer SDK.

Off-chain core for an options protocol built on the 1inch limit order
protocol: dual-signature order construction, option digest replay
protection and the relayer's order lifecycle.
"""

from .config import (
    RelayerConfig,
    ResolvedRelayerConfig,
    configure_logging,
    load_config_from_env,
    resolve_config,
)
from .errors import (
    DigestCollision,
    InteractionDecodeError,
    InvalidAddressFormat,
    InvalidParameter,
    InvalidStatusTransition,
    OptionsRelayerError,
    OrderAlreadyExists,
    OrderNotFound,
    SaltExhaustion,
    SignatureMismatch,
    VerifierUnavailable,
)
from .orders import (
    CompleteOrder,
    FillArgs,
    LocalTypedDataSigner,
    OptionOrderBuilder,
    OptionOrderRequest,
    OptionParams,
    OrderHashManager,
    TypedDataSigner,
    UniquenessScheme,
    create_option_domain,
    create_order_domain,
    prepare_fill,
)
from .relayer import OptionsRelayer, compute_order_hash
from .store import InMemoryOrderStore, OrderStatus, StoredOrder
from .verifier import InMemoryOptionVerifier, OptionVerifierClient

__version__ = "0.1.0"

__all__ = [
    # Config
    "RelayerConfig",
    "ResolvedRelayerConfig",
    "configure_logging",
    "load_config_from_env",
    "resolve_config",
    # Errors
    "OptionsRelayerError",
    "InvalidAddressFormat",
    "InvalidParameter",
    "VerifierUnavailable",
    "DigestCollision",
    "SaltExhaustion",
    "SignatureMismatch",
    "InteractionDecodeError",
    "InvalidStatusTransition",
    "OrderNotFound",
    "OrderAlreadyExists",
    # Orders
    "CompleteOrder",
    "FillArgs",
    "LocalTypedDataSigner",
    "OptionOrderBuilder",
    "OptionOrderRequest",
    "OptionParams",
    "OrderHashManager",
    "TypedDataSigner",
    "UniquenessScheme",
    "create_option_domain",
    "create_order_domain",
    "prepare_fill",
    # Relayer
    "OptionsRelayer",
    "compute_order_hash",
    "InMemoryOrderStore",
    "OrderStatus",
    "StoredOrder",
    # Verifier
    "InMemoryOptionVerifier",
    "OptionVerifierClient",
]
