"""
EVM Chain Configuration Management

Static chain data (router deployments, token registry), environment-aware
loading of the swap configuration, and the canonical conversion between
human-readable amounts and smallest-unit integers.

The configuration is resolved once at startup into an immutable
``SwapConfig`` and passed explicitly to every pipeline component; no stage
reads the environment or the network to discover it.
"""

import os
import logging
from decimal import Decimal, InvalidOperation
from typing import Dict, Optional, Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator
from web3 import AsyncWeb3
import dotenv

from .schemas import Token, PERMIT2_ADDRESS, UINT256_MAX
from ..engine.exceptions import ConfigurationError

dotenv.load_dotenv()

logger = logging.getLogger(__name__)


MAINNET_CHAIN_ID: int = 1
GOERLI_CHAIN_ID: int = 5
SEPOLIA_CHAIN_ID: int = 11155111

#: Allowance written by the allowance gate when a raise is needed.  Approving
#: the maximum amortizes future approvals for the same token.
MAX_APPROVAL_AMOUNT: int = UINT256_MAX

DEFAULT_PERMIT_EXPIRY_SECONDS: int = 1800
DEFAULT_ROUTE_DEADLINE_SECONDS: int = 1800
DEFAULT_SLIPPAGE_TOLERANCE: Decimal = Decimal("0.5")  # percent
DEFAULT_GAS_LIMIT: int = 1_000_000
DEFAULT_APPROVAL_TIMEOUT: float = 120.0
DEFAULT_APPROVAL_POLL_LATENCY: float = 0.1
DEFAULT_ROUTING_API_URL: str = "https://api.uniswap.org/v1/quote"

RouterVariant = Literal["UNIVERSAL", "SWAP_ROUTER_02"]
PermitVariant = Literal["AllowanceTransfer", "SignatureTransfer"]


# Router deployments by variant and chain.
_ROUTER_ADDRESSES: Dict[str, Dict[int, str]] = {
    "UNIVERSAL": {
        MAINNET_CHAIN_ID: "0x3fC91A3afd70395Cd496C647d5a6CC9D4B2b7FAD",
        GOERLI_CHAIN_ID: "0x4648a43B2C14Da09FdF82B161150d3F634f40491",
        SEPOLIA_CHAIN_ID: "0x3fC91A3afd70395Cd496C647d5a6CC9D4B2b7FAD",
    },
    "SWAP_ROUTER_02": {
        MAINNET_CHAIN_ID: "0x68b3465833fb72A70ecDF485E0e4C7bD8665Fc45",
        GOERLI_CHAIN_ID: "0x68b3465833fb72A70ecDF485E0e4C7bD8665Fc45",
        SEPOLIA_CHAIN_ID: "0x3bFA4769FB09eefC5a80d6E87c3B9C650f7Ae48E",
    },
}


# Raw token registry per chain: symbol -> (address, decimals, name)
_TOKENS_DATA: Dict[int, Dict[str, tuple]] = {
    MAINNET_CHAIN_ID: {
        "WETH": ("0xC02aaA39b223FE8D0A0e5C4F27eAD9083C756Cc2", 18, "Wrapped Ether"),
        "UNI": ("0x1f9840a85d5aF5bf1D1762F925BDADdC4201F984", 18, "Uniswap"),
        "USDT": ("0xdAC17F958D2ee523a2206206994597C13D831ec7", 6, "USD Tether"),
        "USDC": ("0xA0b86991c6218b36c1d19D4a2e9Eb0cE3606eB48", 6, "USD Coin"),
        "DAI": ("0x6B175474E89094C44Da98b954EedeAC495271d0F", 18, "Dai Stablecoin"),
    },
    GOERLI_CHAIN_ID: {
        "WETH": ("0xB4FBF271143F4FBf7B91A5ded31805e42b2208d6", 18, "Wrapped Ether"),
        "UNI": ("0x1f9840a85d5aF5bf1D1762F925BDADdC4201F984", 18, "Uniswap"),
        "USDT": ("0xC2C527C0CACF457746Bd31B2a698Fe89de2b6d49", 6, "USD Tether"),
        "DAI": ("0x11fE4B6AE13d2a6055C8D9cF65c55bac32B5d844", 18, "Dai Stablecoin"),
    },
    SEPOLIA_CHAIN_ID: {
        "WETH": ("0xfFf9976782d46CC05630D1f6eBAb18b2324d6B14", 18, "Wrapped Ether"),
        "UNI": ("0x1f9840a85d5aF5bf1D1762F925BDADdC4201F984", 18, "Uniswap"),
        "USDC": ("0x1c7D4B196Cb0C7B01d743Fbc6116a902379C7238", 6, "USD Coin"),
    },
}

SUPPORTED_CHAIN_IDS = tuple(_TOKENS_DATA.keys())


def get_router_address(chain_id: int, router_variant: str) -> str:
    """
    Look up the router deployment for a chain.

    Args:
        chain_id: EVM chain ID.
        router_variant: ``"UNIVERSAL"`` or ``"SWAP_ROUTER_02"``.

    Returns:
        str: Router contract address.

    Raises:
        ConfigurationError: If the variant or chain is not supported.
    """
    by_chain = _ROUTER_ADDRESSES.get(router_variant)
    if by_chain is None:
        raise ConfigurationError(
            f"Unknown router variant '{router_variant}'. "
            f"Expected one of {sorted(_ROUTER_ADDRESSES)}"
        )
    address = by_chain.get(chain_id)
    if address is None:
        raise ConfigurationError(
            f"No {router_variant} router deployment for chain {chain_id}"
        )
    return address


def get_token(chain_id: int, symbol: str) -> Token:
    """
    Build the immutable ``Token`` for a registered symbol.

    Args:
        chain_id: EVM chain ID.
        symbol: Ticker symbol, case-insensitive (e.g. ``"usdt"``).

    Returns:
        Token: Token value object.

    Raises:
        ConfigurationError: If the chain or symbol is not registered.
    """
    tokens = _TOKENS_DATA.get(chain_id)
    if tokens is None:
        raise ConfigurationError(
            f"Unsupported chain_id: {chain_id}. Supported chains: {SUPPORTED_CHAIN_IDS}"
        )
    search_symbol = symbol.strip().upper()
    entry = tokens.get(search_symbol)
    if entry is None:
        raise ConfigurationError(
            f"Token with symbol '{symbol}' is not registered for chain ID {chain_id}."
        )
    address, decimals, name = entry
    return Token(
        chain_id=chain_id,
        address=address,
        decimals=decimals,
        symbol=search_symbol,
        name=name,
    )


class SwapConfig(BaseModel):
    """
    Immutable process-wide swap configuration.

    Constructed once at startup and passed by reference into every pipeline
    component.

    Attributes:
        chain_id: Target EVM chain ID.
        wallet_address: Owner / sender address.
        rpc_url: JSON-RPC endpoint.
        router_variant: Router family the routes are built for.
        router_address: Router deployment receiving the swap transaction and
            named as permit spender.
        permit2_address: Permit authority contract.
        permit_variant: Which Permit2 scheme the pipeline signs.
        permit_expiry_seconds: Horizon for permit expiration and signature
            deadline.
        route_deadline_seconds: Horizon for the swap deadline passed to the
            routing service.
        slippage_tolerance: Maximum slippage, in percent.
        gas_limit: Gas limit used when the caller supplies no override.
        approval_timeout: Seconds to wait for the approval receipt.
        approval_poll_latency: Seconds between receipt polls.
        routing_api_url: Routing service quote endpoint.
    """

    model_config = ConfigDict(frozen=True)

    chain_id: int = Field(..., ge=1, description="Target EVM chain ID")
    wallet_address: str = Field(..., description="Owner / sender address")
    rpc_url: Optional[str] = Field(default=None, description="JSON-RPC endpoint URL")
    router_variant: RouterVariant = Field(default="UNIVERSAL")
    router_address: str = Field(..., description="Router deployment address")
    permit2_address: str = Field(default=PERMIT2_ADDRESS)
    permit_variant: PermitVariant = Field(default="AllowanceTransfer")
    permit_expiry_seconds: int = Field(default=DEFAULT_PERMIT_EXPIRY_SECONDS, gt=0)
    route_deadline_seconds: int = Field(default=DEFAULT_ROUTE_DEADLINE_SECONDS, gt=0)
    slippage_tolerance: Decimal = Field(default=DEFAULT_SLIPPAGE_TOLERANCE, ge=0, le=100)
    gas_limit: int = Field(default=DEFAULT_GAS_LIMIT, gt=0)
    approval_timeout: float = Field(default=DEFAULT_APPROVAL_TIMEOUT, gt=0)
    approval_poll_latency: float = Field(default=DEFAULT_APPROVAL_POLL_LATENCY, gt=0)
    routing_api_url: str = Field(default=DEFAULT_ROUTING_API_URL)

    @field_validator("wallet_address", "router_address", "permit2_address")
    @classmethod
    def _checksum_address(cls, value: str) -> str:
        if not isinstance(value, str) or not value.startswith("0x") or len(value) != 42:
            raise ValueError(f"expected a 0x-prefixed 42-character address, got {value!r}")
        return AsyncWeb3.to_checksum_address(value)


def build_swap_config(
    *,
    chain_id: int,
    wallet_address: str,
    router_variant: str = "UNIVERSAL",
    **overrides,
) -> SwapConfig:
    """
    Build a ``SwapConfig``, deriving the router address from the chain.

    Args:
        chain_id: Target EVM chain ID.
        wallet_address: Owner / sender address.
        router_variant: ``"UNIVERSAL"`` or ``"SWAP_ROUTER_02"``.
        **overrides: Any other ``SwapConfig`` field.

    Raises:
        ConfigurationError: If the chain or router variant is unsupported,
            or a field fails validation.
    """
    if chain_id not in SUPPORTED_CHAIN_IDS:
        raise ConfigurationError(
            f"Unsupported chain_id: {chain_id}. Supported chains: {SUPPORTED_CHAIN_IDS}"
        )
    overrides.setdefault("router_address", get_router_address(chain_id, router_variant))
    try:
        return SwapConfig(
            chain_id=chain_id,
            wallet_address=wallet_address,
            router_variant=router_variant,
            **overrides,
        )
    except ValueError as exc:
        raise ConfigurationError(f"Invalid swap configuration: {exc}") from exc


# ---------------------------------------------------------------------------
# Environment
# ---------------------------------------------------------------------------


def get_wallet_address_from_env() -> Optional[str]:
    """Load the owner wallet address (``WALLET_ADDRESS``)."""
    return os.getenv("WALLET_ADDRESS")


def get_wallet_secret_from_env() -> Optional[str]:
    """
    Load the owner's private key (``WALLET_SECRET``).

    Note:
        The key should be stored securely in environment variables and never
        committed to version control.
    """
    return os.getenv("WALLET_SECRET")


def get_rpc_url_from_env() -> Optional[str]:
    """Load the JSON-RPC endpoint (``RPC_URL``)."""
    return os.getenv("RPC_URL")


def get_router_variant_from_env() -> str:
    """``UNISWAP_ROUTER=UNIVERSAL`` selects the Universal Router, anything else SwapRouter02."""
    return "UNIVERSAL" if os.getenv("UNISWAP_ROUTER") == "UNIVERSAL" else "SWAP_ROUTER_02"


def get_permit_variant_from_env() -> str:
    """Load the Permit2 scheme (``PERMIT_VARIANT``), AllowanceTransfer by default."""
    return os.getenv("PERMIT_VARIANT") or "AllowanceTransfer"


def get_routing_api_url_from_env() -> str:
    """Load the routing service endpoint (``ROUTING_API_URL``)."""
    return os.getenv("ROUTING_API_URL") or DEFAULT_ROUTING_API_URL


async def resolve_chain_id(w3: AsyncWeb3) -> int:
    """
    Ask the connected node for its chain ID.

    Called once at startup; the result is frozen into ``SwapConfig``.

    Raises:
        ConfigurationError: If the node reports a chain this package has no
            deployments for.
    """
    chain_id = int(await w3.eth.chain_id)
    if chain_id not in SUPPORTED_CHAIN_IDS:
        raise ConfigurationError(
            f"Connected node reports chain {chain_id}. Supported chains: {SUPPORTED_CHAIN_IDS}"
        )
    return chain_id


async def load_swap_config(w3: AsyncWeb3) -> SwapConfig:
    """
    Build the process-wide ``SwapConfig`` from the environment.

    Args:
        w3: AsyncWeb3 connected to ``RPC_URL``; used once to resolve the
            chain ID.

    Raises:
        ConfigurationError: If ``WALLET_ADDRESS`` is missing or any value is
            invalid.
    """
    wallet_address = get_wallet_address_from_env()
    if not wallet_address:
        raise ConfigurationError("WALLET_ADDRESS environment variable is not set")

    chain_id = await resolve_chain_id(w3)
    config = build_swap_config(
        chain_id=chain_id,
        wallet_address=wallet_address,
        router_variant=get_router_variant_from_env(),
        rpc_url=get_rpc_url_from_env(),
        permit_variant=get_permit_variant_from_env(),
        routing_api_url=get_routing_api_url_from_env(),
    )
    logger.info(
        "swap config loaded: chain=%s router=%s (%s) permit=%s",
        config.chain_id, config.router_variant, config.router_address, config.permit_variant,
    )
    return config


# ---------------------------------------------------------------------------
# Amount conversion
# ---------------------------------------------------------------------------


def amount_to_value(*, amount: int | str | Decimal, decimals: int) -> int:
    """Convert a human-readable token `amount` into smallest-unit integer `value`.

    This is the only entry point for decimal amounts: everything downstream
    works on integers.  Floats are rejected outright.

    Args:
        amount: Human-readable amount (e.g. ``"1.23"`` for USDT). Accepts int/str/Decimal.
        decimals: Token decimals (e.g. 6 for USDT).

    Returns:
        int: Smallest-unit integer value.

    Raises:
        ValueError: If inputs are invalid or the amount cannot be represented in smallest units.
    """
    if not isinstance(decimals, int) or decimals < 0:
        raise ValueError("decimals must be a non-negative int")
    if isinstance(amount, float):
        raise ValueError("float amounts are not accepted; pass a str or Decimal")

    try:
        dec_amount = amount if isinstance(amount, Decimal) else Decimal(str(amount))
    except (InvalidOperation, ValueError, TypeError) as e:
        raise ValueError(f"Invalid amount: {amount!r}") from e

    if dec_amount < 0:
        raise ValueError("amount must be non-negative")

    scaled = dec_amount.scaleb(decimals)

    # Require exact smallest-unit representability (no fractional smallest units)
    if scaled != scaled.to_integral_value():
        raise ValueError(
            f"amount {amount!r} is not representable with decimals={decimals} "
            f"(would create fractional smallest units)"
        )

    return int(scaled)


def value_to_amount(*, value: int | str | Decimal, decimals: int) -> Decimal:
    """Convert a smallest-unit integer `value` into a human-readable `Decimal` amount.

    Used for display only (quotes, log lines).

    Raises:
        ValueError: If inputs are invalid.
    """
    if not isinstance(decimals, int) or decimals < 0:
        raise ValueError("decimals must be a non-negative int")

    try:
        dec_value = value if isinstance(value, Decimal) else Decimal(str(value))
    except (InvalidOperation, ValueError, TypeError) as e:
        raise ValueError(f"Invalid value: {value!r}") from e

    if dec_value < 0:
        raise ValueError("value must be non-negative")

    if dec_value != dec_value.to_integral_value():
        raise ValueError("value must be an integer in smallest units")

    return dec_value.scaleb(-decimals)
