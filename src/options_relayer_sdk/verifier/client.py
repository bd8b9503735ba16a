"""JSON-RPC client for the option verifier contract.

Read-only ``eth_call`` wrapper over ``httpx``. Every transport failure,
timeout or JSON-RPC error surfaces as ``VerifierUnavailable``.
"""

import itertools
import logging
from typing import Any, List, Optional, Sequence

import httpx
from eth_abi import decode, encode
from eth_abi.exceptions import DecodingError
from eth_utils import keccak

from ..errors import VerifierUnavailable
from ..orders.codec import canonical_address
from ..orders.utils import strip_hex_prefix

logger = logging.getLogger(__name__)

OPTION_HASH_ARG_TYPES = [
    "address",
    "address",
    "address",
    "uint256",
    "uint256",
    "uint256",
    "uint256",
]


def function_selector(signature: str) -> bytes:
    """First four bytes of keccak over the canonical function signature."""
    return keccak(text=signature)[:4]


IS_OPTION_HASH_AVAILABLE = function_selector(
    "isOptionHashAvailable(address,address,address,uint256,uint256,uint256,uint256)"
)
GENERATE_OPTION_HASH = function_selector(
    "generateOptionHash(address,address,address,uint256,uint256,uint256,uint256)"
)
NAME = function_selector("name()")
NONCES = function_selector("nonces(address)")


class OptionVerifierClient:
    """Queries the option verifier (and permit tokens) over JSON-RPC.

    Example:
        ```python
        async with OptionVerifierClient("http://localhost:8545", nft_address) as client:
            available = await client.is_option_hash_available(...)
        ```
    """

    def __init__(
        self,
        rpc_url: str,
        verifier_address: str,
        timeout: float = 10.0,
        http_client: Optional[httpx.AsyncClient] = None,
    ):
        """Initialize the client.

        Args:
            rpc_url: JSON-RPC endpoint
            verifier_address: Option verifier contract address
            timeout: HTTP timeout in seconds (ignored when http_client is given)
            http_client: Shared client, e.g. with a mock transport; left open by ``aclose``
        """
        self.rpc_url = rpc_url
        self.verifier_address = canonical_address(verifier_address, "verifier_address")
        self._owns_client = http_client is None
        self._http_client = http_client or httpx.AsyncClient(timeout=timeout)
        self._ids = itertools.count(1)

    async def __aenter__(self) -> "OptionVerifierClient":
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        if self._owns_client:
            await self._http_client.aclose()

    async def _rpc(self, method: str, params: List[Any]) -> Any:
        request = {
            "jsonrpc": "2.0",
            "id": next(self._ids),
            "method": method,
            "params": params,
        }
        try:
            response = await self._http_client.post(self.rpc_url, json=request)
        except httpx.HTTPError as e:
            logger.warning("RPC %s to %s failed: %s", method, self.rpc_url, e)
            raise VerifierUnavailable(f"RPC request failed: {e}") from e

        try:
            body = response.json()
        except ValueError as e:
            raise VerifierUnavailable(
                f"RPC request failed: {response.status_code} {response.text}"
            ) from e

        if isinstance(body, dict) and "error" in body:
            error = body["error"]
            message = error.get("message", error) if isinstance(error, dict) else error
            logger.warning("RPC %s returned error: %s", method, message)
            raise VerifierUnavailable(f"RPC error: {message}")

        if not response.is_success:
            raise VerifierUnavailable(
                f"RPC request failed: {response.status_code} {response.text}"
            )
        if not isinstance(body, dict) or "result" not in body:
            raise VerifierUnavailable("RPC returned empty result")
        return body["result"]

    async def _call(
        self,
        to: str,
        selector: bytes,
        arg_types: Sequence[str] = (),
        args: Sequence[Any] = (),
        return_types: Sequence[str] = (),
    ) -> tuple:
        data = selector + (encode(list(arg_types), list(args)) if arg_types else b"")
        result = await self._rpc("eth_call", [{"to": to, "data": "0x" + data.hex()}, "latest"])
        try:
            return decode(list(return_types), bytes.fromhex(strip_hex_prefix(result)))
        except (DecodingError, ValueError) as e:
            raise VerifierUnavailable(f"Could not decode eth_call result {result!r}") from e

    def _option_args(
        self,
        underlying_asset: str,
        strike_asset: str,
        maker: str,
        strike_price: int,
        expiry: int,
        amount: int,
        salt: int,
    ) -> List[Any]:
        return [
            canonical_address(underlying_asset, "underlying_asset"),
            canonical_address(strike_asset, "strike_asset"),
            canonical_address(maker, "maker"),
            strike_price,
            expiry,
            amount,
            salt,
        ]

    async def is_option_hash_available(
        self,
        underlying_asset: str,
        strike_asset: str,
        maker: str,
        strike_price: int,
        expiry: int,
        amount: int,
        salt: int,
    ) -> bool:
        (available,) = await self._call(
            self.verifier_address,
            IS_OPTION_HASH_AVAILABLE,
            OPTION_HASH_ARG_TYPES,
            self._option_args(
                underlying_asset, strike_asset, maker, strike_price, expiry, amount, salt
            ),
            ["bool"],
        )
        return bool(available)

    async def generate_option_hash(
        self,
        underlying_asset: str,
        strike_asset: str,
        maker: str,
        strike_price: int,
        expiry: int,
        amount: int,
        salt: int,
    ) -> bytes:
        (digest,) = await self._call(
            self.verifier_address,
            GENERATE_OPTION_HASH,
            OPTION_HASH_ARG_TYPES,
            self._option_args(
                underlying_asset, strike_asset, maker, strike_price, expiry, amount, salt
            ),
            ["bytes32"],
        )
        return bytes(digest)

    async def get_chain_id(self) -> int:
        result = await self._rpc("eth_chainId", [])
        return int(result, 16)

    async def get_token_name(self, token_address: str) -> str:
        (name,) = await self._call(
            canonical_address(token_address, "token_address"), NAME, return_types=["string"]
        )
        return name

    async def get_permit_nonce(self, token_address: str, owner: str) -> int:
        (nonce,) = await self._call(
            canonical_address(token_address, "token_address"),
            NONCES,
            ["address"],
            [canonical_address(owner, "owner")],
            ["uint256"],
        )
        return nonce

