"""
Swap pipeline wiring.

Binds one handler per stage event on an ``EventBus`` and runs them through
an ``EventChain``::

    allowance gate -> nonce source -> permit builder -> signer/verifier
      -> route resolver -> transaction assembler

Any stage error propagates out of ``SwapPipeline.run`` and no later stage is
invoked.
"""

import logging
from typing import Callable, Optional, Union

from pydantic import BaseModel, ConfigDict
from web3 import AsyncWeb3, AsyncHTTPProvider

from ..evm.constants import SwapConfig, load_swap_config, get_rpc_url_from_env
from ..evm.schemas import (
    AllowanceCheck,
    AllowanceTransferPermit,
    EVMECDSASignature,
    Route,
    SignatureTransferPermit,
    Token,
    TransactionDescriptor,
    VerifiedPermit,
)
from ..evm.signatures import LocalAccountSigner, get_signer_from_env
from ..engine.events import (
    BaseEvent,
    Dependencies,
    EventBus,
    SwapRequestedEvent,
    AllowanceReadyEvent,
    NonceResolvedEvent,
    PermitBuiltEvent,
    PermitVerifiedEvent,
    RouteFoundEvent,
    TransactionAssembledEvent,
)
from ..engine.executors import EventChain
from ..engine.exceptions import ConfigurationError, InvalidTransition
from .allowance import AllowanceGate
from .nonces import NonceSource
from .permits import PermitBuilder
from .signing import PermitSigner
from .routing import RouteResolver, RoutingService, UniswapRoutingClient
from .assembler import TransactionAssembler

logger = logging.getLogger(__name__)


# ==================== Stage handlers ====================

async def handle_swap_requested(event: SwapRequestedEvent, deps: Dependencies) -> AllowanceReadyEvent:
    config = deps.config
    allowance = await deps.allowance_gate.ensure_allowance(
        event.source.address, config.wallet_address, config.permit2_address, event.amount
    )
    return AllowanceReadyEvent(request=event, allowance=allowance)


async def handle_allowance_ready(event: AllowanceReadyEvent, deps: Dependencies) -> NonceResolvedEvent:
    config = deps.config
    nonce = await deps.nonce_source.next_nonce(
        event.request.source.address, config.wallet_address, config.router_address
    )
    return NonceResolvedEvent(request=event.request, allowance=event.allowance, nonce=nonce)


async def handle_nonce_resolved(event: NonceResolvedEvent, deps: Dependencies) -> PermitBuiltEvent:
    permit = deps.permit_builder.build_permit(
        event.request.source.address,
        event.request.amount,
        deps.config.router_address,
        event.nonce,
    )
    return PermitBuiltEvent(request=event.request, allowance=event.allowance, permit=permit)


async def handle_permit_built(event: PermitBuiltEvent, deps: Dependencies) -> PermitVerifiedEvent:
    verified = deps.signer.sign_and_verify(event.permit)
    return PermitVerifiedEvent(request=event.request, allowance=event.allowance, verified=verified)


async def handle_permit_verified(event: PermitVerifiedEvent, deps: Dependencies) -> RouteFoundEvent:
    request = event.request
    route = await deps.route_resolver.find_route(
        request.source,
        request.dest,
        request.amount,
        event.verified,
        recipient=request.recipient,
    )
    return RouteFoundEvent(
        request=request, allowance=event.allowance, verified=event.verified, route=route
    )


async def handle_route_found(event: RouteFoundEvent, deps: Dependencies) -> TransactionAssembledEvent:
    transaction = deps.assembler.assemble(event.route)
    return TransactionAssembledEvent(
        request=event.request,
        allowance=event.allowance,
        verified=event.verified,
        route=event.route,
        transaction=transaction,
    )


async def log_stage(event: BaseEvent, deps: Dependencies) -> None:
    logger.debug("stage: %r", event)


def build_event_bus() -> EventBus:
    """Event bus with every swap stage bound."""
    bus = EventBus()
    bus.subscribe(SwapRequestedEvent, handle_swap_requested)
    bus.subscribe(AllowanceReadyEvent, handle_allowance_ready)
    bus.subscribe(NonceResolvedEvent, handle_nonce_resolved)
    bus.subscribe(PermitBuiltEvent, handle_permit_built)
    bus.subscribe(PermitVerifiedEvent, handle_permit_verified)
    bus.subscribe(RouteFoundEvent, handle_route_found)
    for event_class in (
        SwapRequestedEvent,
        AllowanceReadyEvent,
        NonceResolvedEvent,
        PermitBuiltEvent,
        PermitVerifiedEvent,
        RouteFoundEvent,
        TransactionAssembledEvent,
    ):
        bus.hook(event_class, log_stage)
    return bus


# ==================== Pipeline ====================

class SwapResult(BaseModel):
    """Every artifact of one successful swap attempt."""

    model_config = ConfigDict(frozen=True)

    allowance: AllowanceCheck
    verified: VerifiedPermit
    route: Route
    transaction: TransactionDescriptor

    @property
    def nonce(self) -> int:
        return self.verified.permit.nonce

    @property
    def permit(self) -> Union[AllowanceTransferPermit, SignatureTransferPermit]:
        return self.verified.permit

    @property
    def signature(self) -> EVMECDSASignature:
        return self.verified.signature


class SwapPipeline:
    """
    Runs one swap attempt end to end and returns the transaction descriptor
    for an external submitter.

    Attempts are independent: every run re-reads allowance and nonce.
    """

    def __init__(self, deps: Dependencies, event_bus: Optional[EventBus] = None) -> None:
        self.deps = deps
        self.event_bus = event_bus or build_event_bus()

    @property
    def config(self) -> SwapConfig:
        return self.deps.config

    async def run(
        self,
        source: Token,
        dest: Token,
        amount: int,
        recipient: Optional[str] = None,
    ) -> SwapResult:
        """
        Swap ``amount`` smallest units of ``source`` into ``dest``.

        Raises:
            ValueError: If the request itself is invalid.
            PermitSwapError: Any stage failure, unchanged.
        """
        if isinstance(amount, bool) or not isinstance(amount, int) or amount <= 0:
            raise ValueError(f"amount must be a positive integer in smallest units, got {amount!r}")
        if source == dest:
            raise ValueError("source and destination tokens must differ")
        for token in (source, dest):
            if token.chain_id != self.config.chain_id:
                raise ConfigurationError(
                    f"Token {token.symbol} is on chain {token.chain_id}, pipeline is on {self.config.chain_id}"
                )

        initial = SwapRequestedEvent(source=source, dest=dest, amount=amount, recipient=recipient)
        chain = EventChain(self.event_bus, self.deps)

        final: BaseEvent = initial
        async for event in chain.execute(initial):
            final = event

        if not isinstance(final, TransactionAssembledEvent):
            raise InvalidTransition(
                f"Pipeline ended at {type(final).__name__}", current_state=type(final)
            )
        return SwapResult(
            allowance=final.allowance,
            verified=final.verified,
            route=final.route,
            transaction=final.transaction,
        )


def build_pipeline(
    w3: AsyncWeb3,
    signer: LocalAccountSigner,
    config: SwapConfig,
    routing_service: Optional[RoutingService] = None,
    clock: Optional[Callable[[], float]] = None,
) -> SwapPipeline:
    """
    Wire every stage for ``config``.

    Args:
        w3: Connected AsyncWeb3.
        signer: Owner's signer; its address must be ``config.wallet_address``.
        config: Swap configuration.
        routing_service: Defaults to ``UniswapRoutingClient`` on
            ``config.routing_api_url``.
        clock: Current UNIX time source for permit and route deadlines;
            defaults to ``time.time``.
    """
    if signer.address.lower() != config.wallet_address.lower():
        raise ConfigurationError(
            f"Signer address {signer.address} does not match wallet {config.wallet_address}"
        )
    service = routing_service or UniswapRoutingClient(config.routing_api_url)
    deps = Dependencies(
        config=config,
        allowance_gate=AllowanceGate(w3, signer, config),
        nonce_source=NonceSource(w3, config),
        permit_builder=PermitBuilder(config, clock),
        signer=PermitSigner(signer, config),
        route_resolver=RouteResolver(service, config, clock),
        assembler=TransactionAssembler(config),
    )
    return SwapPipeline(deps)


async def build_pipeline_from_env(routing_service: Optional[RoutingService] = None) -> SwapPipeline:
    """
    Resolve configuration from the environment and wire the pipeline.

    Raises:
        ConfigurationError: If ``RPC_URL``, ``WALLET_ADDRESS`` or
            ``WALLET_SECRET`` is missing or invalid.
    """
    rpc_url = get_rpc_url_from_env()
    if not rpc_url:
        raise ConfigurationError("RPC_URL environment variable is not set")
    w3 = AsyncWeb3(AsyncHTTPProvider(rpc_url))
    config = await load_swap_config(w3)
    return build_pipeline(w3, get_signer_from_env(), config, routing_service)
