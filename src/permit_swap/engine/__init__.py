from .exceptions import (
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
]
