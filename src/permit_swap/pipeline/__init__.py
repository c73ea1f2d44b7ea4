from .allowance import AllowanceGate
from .nonces import NonceSource
from .permits import PermitBuilder
from .signing import PermitSigner, verify_typed_data
from .routing import (
    EXACT_INPUT,
    RouteRequest,
    RoutingService,
    UniswapRoutingClient,
    RouteResolver,
)
from .assembler import TransactionAssembler
from .swap import SwapPipeline, SwapResult, build_pipeline, build_pipeline_from_env

__all__ = [
    "AllowanceGate",
    "NonceSource",
    "PermitBuilder",
    "PermitSigner",
    "verify_typed_data",
    "EXACT_INPUT",
    "RouteRequest",
    "RoutingService",
    "UniswapRoutingClient",
    "RouteResolver",
    "TransactionAssembler",
    "SwapPipeline",
    "SwapResult",
    "build_pipeline",
    "build_pipeline_from_env",
]
