"""Relayer configuration.

Settings come from a ``RelayerConfig`` dict, from the environment, or both
(explicit values win). A ``.env`` file in the working directory is loaded
first.

Environment variables:
- CHAIN_ID: Chain ID (default 31337)
- RPC_URL: JSON-RPC endpoint (default http://localhost:8545)
- LOP_ADDRESS: Limit order protocol contract (required)
- OPTIONS_NFT_ADDRESS: Option verifier contract (required)
- VERIFIER_TIMEOUT_SECONDS: Availability check timeout (default 10)
- SALT_MAX_ATTEMPTS: Salt search budget per order (default 10)
- SALT_RETRY_DELAY_SECONDS: Pause between salt attempts (default 0.05)
- LOG_LEVEL: Logging level name (default INFO)
"""

import logging
import os
from dataclasses import dataclass
from typing import Mapping, Optional, TypedDict

from dotenv import load_dotenv

from .errors import InvalidParameter
from .orders.codec import canonical_address
from .orders.hash_manager import (
    DEFAULT_MAX_ATTEMPTS,
    DEFAULT_RETRY_DELAY_SECONDS,
    DEFAULT_TIMEOUT_SECONDS,
)
from .orders.utils import DEFAULT_CHAIN_ID

DEFAULT_RPC_URL = "http://localhost:8545"
DEFAULT_LOG_LEVEL = "INFO"
LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


class RelayerConfig(TypedDict, total=False):
    """Relayer configuration. Every key is optional; see ``resolve_config``."""

    chain_id: int
    """Chain ID. Default: 31337 (local hardhat node)"""

    rpc_url: str
    """JSON-RPC endpoint. Default: http://localhost:8545"""

    lop_address: str
    """1inch limit order protocol contract"""

    options_nft_address: str
    """Option verifier (OptionNFT) contract"""

    verifier_timeout_seconds: float
    """Availability check timeout. Default: 10"""

    salt_max_attempts: int
    """Salt search budget per order. Default: 10"""

    salt_retry_delay_seconds: float
    """Pause between salt attempts. Default: 0.05"""

    log_level: str
    """Logging level name. Default: INFO"""


@dataclass(frozen=True)
class ResolvedRelayerConfig:
    """Relayer configuration with all defaults applied."""

    chain_id: int
    rpc_url: str
    lop_address: str
    options_nft_address: str
    verifier_timeout_seconds: float
    salt_max_attempts: int
    salt_retry_delay_seconds: float
    log_level: str


def resolve_config(config: Optional[RelayerConfig] = None) -> ResolvedRelayerConfig:
    """Apply defaults and validate.

    Raises:
        InvalidParameter: If a contract address is missing or a limit is not positive
        InvalidAddressFormat: If a contract address is malformed
    """
    config = config or {}
    for field in ("lop_address", "options_nft_address"):
        if not config.get(field):
            raise InvalidParameter(field, "is required")

    resolved = ResolvedRelayerConfig(
        chain_id=config.get("chain_id", DEFAULT_CHAIN_ID),
        rpc_url=config.get("rpc_url", DEFAULT_RPC_URL),
        lop_address=canonical_address(config["lop_address"], "lop_address"),
        options_nft_address=canonical_address(
            config["options_nft_address"], "options_nft_address"
        ),
        verifier_timeout_seconds=config.get(
            "verifier_timeout_seconds", DEFAULT_TIMEOUT_SECONDS
        ),
        salt_max_attempts=config.get("salt_max_attempts", DEFAULT_MAX_ATTEMPTS),
        salt_retry_delay_seconds=config.get(
            "salt_retry_delay_seconds", DEFAULT_RETRY_DELAY_SECONDS
        ),
        log_level=config.get("log_level", DEFAULT_LOG_LEVEL).upper(),
    )
    if resolved.verifier_timeout_seconds <= 0:
        raise InvalidParameter("verifier_timeout_seconds", "must be greater than 0")
    if resolved.salt_max_attempts <= 0:
        raise InvalidParameter("salt_max_attempts", "must be greater than 0")
    if resolved.salt_retry_delay_seconds < 0:
        raise InvalidParameter("salt_retry_delay_seconds", "must not be negative")
    return resolved


def _read_env(env: Mapping[str, str]) -> RelayerConfig:
    config: RelayerConfig = {}
    try:
        if "CHAIN_ID" in env:
            config["chain_id"] = int(env["CHAIN_ID"])
        if "VERIFIER_TIMEOUT_SECONDS" in env:
            config["verifier_timeout_seconds"] = float(env["VERIFIER_TIMEOUT_SECONDS"])
        if "SALT_MAX_ATTEMPTS" in env:
            config["salt_max_attempts"] = int(env["SALT_MAX_ATTEMPTS"])
        if "SALT_RETRY_DELAY_SECONDS" in env:
            config["salt_retry_delay_seconds"] = float(env["SALT_RETRY_DELAY_SECONDS"])
    except ValueError as e:
        raise InvalidParameter("environment", str(e)) from e
    if env.get("RPC_URL"):
        config["rpc_url"] = env["RPC_URL"]
    if env.get("LOP_ADDRESS"):
        config["lop_address"] = env["LOP_ADDRESS"]
    if env.get("OPTIONS_NFT_ADDRESS"):
        config["options_nft_address"] = env["OPTIONS_NFT_ADDRESS"]
    if env.get("LOG_LEVEL"):
        config["log_level"] = env["LOG_LEVEL"]
    return config


def load_config_from_env(
    overrides: Optional[RelayerConfig] = None,
    dotenv_path: Optional[str] = None,
    env: Optional[Mapping[str, str]] = None,
) -> ResolvedRelayerConfig:
    """Resolve configuration from the environment.

    Args:
        overrides: Values that take precedence over the environment
        dotenv_path: ``.env`` file to load (default: search from the working directory)
        env: Mapping to read instead of ``os.environ``; skips ``.env`` loading

    Returns:
        ResolvedRelayerConfig
    """
    if env is None:
        load_dotenv(dotenv_path)
        env = os.environ
    config = _read_env(env)
    config.update(overrides or {})
    return resolve_config(config)


def configure_logging(level: str = DEFAULT_LOG_LEVEL) -> None:
    """Install a basic stderr handler for scripts and local runs."""
    logging.basicConfig(level=level.upper(), format=LOG_FORMAT)
