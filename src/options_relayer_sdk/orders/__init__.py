"""Option order construction.

Key components:
- Address and EIP-712 domain codec
- Maker/taker trait bitfields for the 1inch limit-order protocol
- Salt generation and option digest replay protection
- Dual-signature (LOP order + option payload) order builder
- Interaction payload schemas and the JSON wire format

Example usage:
    ```python
    from options_relayer_sdk.orders import (
        LocalTypedDataSigner,
        OptionOrderBuilder,
        OptionOrderRequest,
        OrderHashManager,
        create_option_domain,
        create_order_domain,
        prepare_fill,
    )
    from options_relayer_sdk.verifier import OptionVerifierClient

    verifier = OptionVerifierClient("http://localhost:8545", OPTIONS_NFT)
    builder = OptionOrderBuilder(
        signer=LocalTypedDataSigner("0x..."),
        hash_manager=OrderHashManager(verifier, create_option_domain(OPTIONS_NFT, 31337)),
        order_domain=create_order_domain(LOP, 31337),
    )

    complete = await builder.build_complete_option(OptionOrderRequest(
        underlying_asset=WETH,
        strike_asset=USDC,
        dummy_token_address=DUMMY,
        strike_price=2_000_000_000,  # 2000 USDC
        option_amount=10**18,        # 1 WETH
        premium=50_000_000,          # 50 USDC
        expiry=int(time.time()) + 86400,
    ))
    fill_args = prepare_fill(complete, complete.order.making_amount)
    ```
"""

from .builder import OptionOrderBuilder, build_order, prepare_fill
from .codec import (
    address_to_int,
    build_domain,
    canonical_address,
    create_option_domain,
    create_order_domain,
    decode_address,
    domain_separator,
    encode_address,
)
from .hash_manager import OrderHashManager
from .hashing import (
    compute_option_digest,
    compute_order_digest,
    recover_signer,
)
from .nonce import InMemoryNonceStore, NonceManager, NonceStore
from .salt import SaltGenerator, generate_multiple, generate_salt
from .schema import (
    OPTION_INTERACTION_PERMIT_V1,
    OPTION_INTERACTION_V1,
    InteractionPayload,
    InteractionSchema,
    build_interaction_payload,
    decode_interaction_payload,
)
from .signing import (
    LocalTypedDataSigner,
    TypedDataSigner,
    sign_option_params,
    sign_order,
    sign_permit,
    split_signature,
    verify_option_signature,
    verify_order_signature,
)
from .traits import (
    build_taker_traits,
    decode_taker_traits_interaction_length,
    decode_traits,
    encode_traits,
    generate_random_nonce,
)
from .types import (
    DEFAULT_OPTION_TRAITS,
    OPTION_TYPES,
    ORDER_TYPES,
    BuiltOrder,
    CompleteOrder,
    EIP712Domain,
    FillArgs,
    MakerTraitFlags,
    OptionOrderRequest,
    OptionParams,
    Order,
    OrderConfig,
    OrderRequest,
    OriginalAddresses,
    PermitSignature,
    Signature,
    UniquenessScheme,
    ValidationResult,
)
from .utils import (
    DEFAULT_CHAIN_ID,
    ZERO_ADDRESS,
    format_units,
    parse_units,
)

__all__ = [
    # Types
    "BuiltOrder",
    "CompleteOrder",
    "EIP712Domain",
    "FillArgs",
    "MakerTraitFlags",
    "OptionOrderRequest",
    "OptionParams",
    "Order",
    "OrderConfig",
    "OrderRequest",
    "OriginalAddresses",
    "PermitSignature",
    "Signature",
    "UniquenessScheme",
    "ValidationResult",
    "DEFAULT_OPTION_TRAITS",
    "ORDER_TYPES",
    "OPTION_TYPES",
    # Codec
    "address_to_int",
    "build_domain",
    "canonical_address",
    "create_option_domain",
    "create_order_domain",
    "decode_address",
    "domain_separator",
    "encode_address",
    # Traits
    "build_taker_traits",
    "decode_taker_traits_interaction_length",
    "decode_traits",
    "encode_traits",
    "generate_random_nonce",
    # Salts and digests
    "SaltGenerator",
    "generate_salt",
    "generate_multiple",
    "compute_option_digest",
    "compute_order_digest",
    "recover_signer",
    "OrderHashManager",
    # Signing
    "LocalTypedDataSigner",
    "TypedDataSigner",
    "sign_order",
    "sign_option_params",
    "sign_permit",
    "split_signature",
    "verify_order_signature",
    "verify_option_signature",
    # Interaction payload
    "InteractionPayload",
    "InteractionSchema",
    "OPTION_INTERACTION_V1",
    "OPTION_INTERACTION_PERMIT_V1",
    "build_interaction_payload",
    "decode_interaction_payload",
    # Builder
    "OptionOrderBuilder",
    "build_order",
    "prepare_fill",
    # Legacy nonces
    "NonceManager",
    "NonceStore",
    "InMemoryNonceStore",
    # Utils
    "DEFAULT_CHAIN_ID",
    "ZERO_ADDRESS",
    "format_units",
    "parse_units",
]
