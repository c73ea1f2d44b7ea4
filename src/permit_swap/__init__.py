"""
Permit2 token swaps: allowance gate, permit signing and route-to-transaction
assembly.
"""

from .engine.exceptions import (
    PermitSwapError,
    AllowanceLookupFailed,
    ApprovalFailed,
    NonceLookupFailed,
    SignatureVerificationFailed,
    RouteNotFound,
    AssemblyError,
    AmountMismatch,
    ConfigurationError,
    InvalidTransition,
)
from .evm import (
    Token,
    SwapConfig,
    LocalAccountSigner,
    build_swap_config,
    get_token,
    amount_to_value,
    value_to_amount,
)
from .pipeline import SwapPipeline, SwapResult, build_pipeline, build_pipeline_from_env

__version__ = "0.1.0"

__all__ = [
    "PermitSwapError",
    "AllowanceLookupFailed",
    "ApprovalFailed",
    "NonceLookupFailed",
    "SignatureVerificationFailed",
    "RouteNotFound",
    "AssemblyError",
    "AmountMismatch",
    "ConfigurationError",
    "InvalidTransition",
    "Token",
    "SwapConfig",
    "LocalAccountSigner",
    "build_swap_config",
    "get_token",
    "amount_to_value",
    "value_to_amount",
    "SwapPipeline",
    "SwapResult",
    "build_pipeline",
    "build_pipeline_from_env",
]
