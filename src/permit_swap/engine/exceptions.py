"""
Exception and Error Definitions Module

Defines the error kinds a swap attempt can end with. Every stage failure is
surfaced as a distinct exception class so that a calling supervisor can
decide whether to retry the whole attempt (fresh nonce, fresh deadlines) or
abort. No stage retries internally.

Exception Hierarchy:
    PermitSwapError (root)
    ├── AllowanceLookupFailed
    ├── ApprovalFailed
    ├── NonceLookupFailed
    ├── SignatureVerificationFailed
    ├── RouteNotFound
    ├── AssemblyError
    ├── AmountMismatch
    ├── ConfigurationError
    └── InvalidTransition
"""

from typing import Any, Dict, Optional


class PermitSwapError(Exception):
    """
    Root exception class for all project-specific exceptions.

    All custom exceptions inherit from this class to enable unified
    exception handling by the caller of the pipeline.
    """
    pass


class AllowanceLookupFailed(PermitSwapError):
    """
    Raised when the token allowance held by the permit authority could not
    be read from the chain.
    """
    pass


class ApprovalFailed(PermitSwapError):
    """
    Raised when the allowance raise could not be completed.

    This includes scenarios such as:
    - Approval transaction confirmed with a non-success status
    - Confirmation did not arrive before the approval timeout
    - Allowance still insufficient when re-read after a confirmed approval

    Attributes:
        tx_hash: Approval transaction hash, if it was broadcast
        receipt: Transaction receipt, if one was obtained
    """

    def __init__(
        self,
        message: str,
        *,
        tx_hash: Optional[str] = None,
        receipt: Optional[Dict[str, Any]] = None,
    ) -> None:
        super().__init__(message)
        self.tx_hash = tx_hash
        self.receipt = receipt


class NonceLookupFailed(PermitSwapError):
    """
    Raised when the permit authority's nonce state could not be read.

    The caller may retry the whole attempt; the nonce source never retries.
    """
    pass


class SignatureVerificationFailed(PermitSwapError):
    """
    Raised when the address recovered from a permit signature does not
    match the expected owner.

    Indicates either key misuse or a domain / type schema mismatch. The
    pipeline halts before any route request or transaction assembly.

    Attributes:
        expected: Expected owner address
        recovered: Address actually recovered from the signature, or None
            if recovery itself failed
    """

    def __init__(
        self,
        message: str,
        *,
        expected: Optional[str] = None,
        recovered: Optional[str] = None,
    ) -> None:
        super().__init__(message)
        self.expected = expected
        self.recovered = recovered


class RouteNotFound(PermitSwapError):
    """
    Raised when the routing service returned no viable path.

    This includes scenarios such as:
    - Routing service error or unreachable endpoint
    - Quoted output of zero

    Not retried automatically since it reflects market state.
    """
    pass


class AssemblyError(PermitSwapError):
    """
    Raised when a route response is malformed and no transaction
    descriptor can be assembled from it.

    This includes scenarios such as:
    - Missing or non-hex calldata
    - Route targeting a different contract than the configured router
    - Unparseable value / gas price fields
    """
    pass


class AmountMismatch(PermitSwapError):
    """
    Raised when the amount requested from the routing service differs from
    the amount authorized by the signed permit.

    This is a caller programming error, never a market condition.
    """
    pass


class ConfigurationError(PermitSwapError):
    """
    Raised when configuration is missing or invalid.

    This includes scenarios such as:
    - Missing wallet address or signing key
    - Unsupported chain identifier
    - Unknown token symbol or router variant
    """
    pass


class InvalidTransition(PermitSwapError):
    """
    Raised when a stage handler produces an event that is not the single
    permitted successor of the event it handled.

    Attributes:
        current_state: Event type that was being handled
        produced: Event type returned by the handler
    """

    def __init__(self, message: str, *, current_state: Any = None, produced: Any = None) -> None:
        super().__init__(message)
        self.current_state = current_state
        self.produced = produced
