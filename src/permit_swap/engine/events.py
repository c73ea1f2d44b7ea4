"""
Event-driven swap stages with typed events and clear data flow.

Each pipeline stage is an event handler: it consumes the event produced by
the previous stage and returns the single permitted successor event.  Events
carry their own data (every artifact produced so far), handlers return next
events, and stage components are injected separately from business data.

Stage order::

    SwapRequestedEvent
      -> AllowanceReadyEvent
      -> NonceResolvedEvent
      -> PermitBuiltEvent
      -> PermitVerifiedEvent
      -> RouteFoundEvent
      -> TransactionAssembledEvent   (terminal)
"""

import asyncio
import inspect
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import TYPE_CHECKING, Dict, Any, Callable, Optional, Awaitable

from pydantic import BaseModel, ConfigDict

from ..evm.schemas import (
    Token,
    PermitTypes,
    AllowanceCheck,
    VerifiedPermit,
    Route,
    TransactionDescriptor,
)

if TYPE_CHECKING:
    from ..evm.constants import SwapConfig
    from ..pipeline.allowance import AllowanceGate
    from ..pipeline.nonces import NonceSource
    from ..pipeline.permits import PermitBuilder
    from ..pipeline.signing import PermitSigner
    from ..pipeline.routing import RouteResolver
    from ..pipeline.assembler import TransactionAssembler

# ==================== Base Event ====================

class BaseEvent(ABC):
    """Base class for all events in the system."""

    @abstractmethod
    def __repr__(self) -> str:
        """String representation of the event."""
        pass


# ==================== Trigger Event (External) ====================

class SwapRequestedEvent(BaseModel, BaseEvent):
    """External trigger: swap ``amount`` smallest units of ``source`` into ``dest``."""
    source: Token
    dest: Token
    amount: int
    recipient: Optional[str] = None

    model_config = ConfigDict(arbitrary_types_allowed=True, frozen=True)

    def __repr__(self) -> str:
        return f"SwapRequestedEvent({self.amount} {self.source.symbol} -> {self.dest.symbol})"


# ==================== Stage Events ====================

class AllowanceReadyEvent(BaseModel, BaseEvent):
    """Result: Permit2 holds a sufficient allowance over the source token."""
    request: SwapRequestedEvent
    allowance: AllowanceCheck

    model_config = ConfigDict(arbitrary_types_allowed=True, frozen=True)

    def __repr__(self) -> str:
        return f"AllowanceReadyEvent(allowance={self.allowance.allowance}, approved={self.allowance.approved})"


class NonceResolvedEvent(BaseModel, BaseEvent):
    """Result: next unused Permit2 nonce for (token, owner, spender)."""
    request: SwapRequestedEvent
    allowance: AllowanceCheck
    nonce: int

    model_config = ConfigDict(arbitrary_types_allowed=True, frozen=True)

    def __repr__(self) -> str:
        return f"NonceResolvedEvent(nonce={self.nonce})"


class PermitBuiltEvent(BaseModel, BaseEvent):
    """Result: unsigned permit ready for signing."""
    request: SwapRequestedEvent
    allowance: AllowanceCheck
    permit: PermitTypes

    model_config = ConfigDict(arbitrary_types_allowed=True, frozen=True)

    def __repr__(self) -> str:
        return f"PermitBuiltEvent(permit_type={self.permit.permit_type}, nonce={self.permit.nonce})"


class PermitVerifiedEvent(BaseModel, BaseEvent):
    """Result: permit signed and the signer recovered as the owner."""
    request: SwapRequestedEvent
    allowance: AllowanceCheck
    verified: VerifiedPermit

    model_config = ConfigDict(arbitrary_types_allowed=True, frozen=True)

    def __repr__(self) -> str:
        return f"PermitVerifiedEvent(signer={self.verified.recovered_signer})"


class RouteFoundEvent(BaseModel, BaseEvent):
    """Result: routing service produced calldata and a non-zero quote."""
    request: SwapRequestedEvent
    allowance: AllowanceCheck
    verified: VerifiedPermit
    route: Route

    model_config = ConfigDict(arbitrary_types_allowed=True, frozen=True)

    def __repr__(self) -> str:
        return f"RouteFoundEvent(quote={self.route.quoted_output})"


class TransactionAssembledEvent(BaseModel, BaseEvent):
    """Terminal result: ready-to-submit transaction descriptor."""
    request: SwapRequestedEvent
    allowance: AllowanceCheck
    verified: VerifiedPermit
    route: Route
    transaction: TransactionDescriptor

    model_config = ConfigDict(arbitrary_types_allowed=True, frozen=True)

    def __repr__(self) -> str:
        return f"TransactionAssembledEvent(to={self.transaction.to}, gas={self.transaction.gas_limit})"


#: The single permitted successor of every non-terminal stage event.
STAGE_TRANSITIONS: Dict[type, type] = {
    SwapRequestedEvent: AllowanceReadyEvent,
    AllowanceReadyEvent: NonceResolvedEvent,
    NonceResolvedEvent: PermitBuiltEvent,
    PermitBuiltEvent: PermitVerifiedEvent,
    PermitVerifiedEvent: RouteFoundEvent,
    RouteFoundEvent: TransactionAssembledEvent,
}


def is_terminal(event: BaseEvent) -> bool:
    """True when ``event`` has no successor stage."""
    return type(event) not in STAGE_TRANSITIONS


# ==================== Dependencies Container ====================

@dataclass(frozen=True)
class Dependencies:
    """Container for stage components and configuration (read-only)."""
    config: "SwapConfig"
    allowance_gate: Optional["AllowanceGate"] = None
    nonce_source: Optional["NonceSource"] = None
    permit_builder: Optional["PermitBuilder"] = None
    signer: Optional["PermitSigner"] = None
    route_resolver: Optional["RouteResolver"] = None
    assembler: Optional["TransactionAssembler"] = None


# ==================== Event Bus ====================

EventHandlerFunc = Callable[[BaseEvent, Dependencies], Awaitable[Optional[BaseEvent]]]
EventHookFunc = Callable[[BaseEvent, Dependencies], Awaitable[None]]


class EventBus:
    """Event dispatcher binding one stage handler per event type."""

    def __init__(self) -> None:
        """Initialize with empty subscribers and hooks."""
        self._subscribers: Dict[type, EventHandlerFunc] = {}
        self._hooks: Dict[type, list[EventHookFunc]] = {}

    def subscribe(self, event_class: type[BaseEvent], handler: EventHandlerFunc) -> None:
        """
        Register the async stage handler for the given event class.

        A stage has exactly one handler: the pipeline never runs two network
        operations concurrently within one attempt.

        Args:
            event_class: The event class to subscribe to.
            handler: The async handler function to call when the event is published.

        Raises:
            TypeError: If handler is not a coroutine function.
            ValueError: If a handler is already registered for ``event_class``.
        """
        if not inspect.iscoroutinefunction(handler):
            raise TypeError(f"Handler must be a coroutine function, got {type(handler).__name__}")
        if event_class in self._subscribers:
            raise ValueError(f"A handler is already registered for {event_class.__name__}")
        self._subscribers[event_class] = handler

    def hook(self, event_class: type[BaseEvent], hook_func: EventHookFunc) -> None:
        """
        Register a hook for the given event class.
        Hooks are executed before the handler when the event is dispatched.

        Args:
            event_class: The event class to hook into.
            hook_func: The hook function to call when the event is published.
        """
        if not inspect.iscoroutinefunction(hook_func):
            raise TypeError(f"Handler must be a coroutine function, got {type(hook_func).__name__}")

        if event_class not in self._hooks:
            self._hooks[event_class] = []
        self._hooks[event_class].append(hook_func)

    def has_handler(self, event_class: type[BaseEvent]) -> bool:
        """Whether a handler is subscribed for ``event_class``."""
        return event_class in self._subscribers

    async def dispatch(self, event: BaseEvent, deps: Dependencies) -> Optional[BaseEvent]:
        """
        Dispatch an event to its hooks and then its handler.

        Args:
            event: The event to dispatch.
            deps: Dependencies container with injected stage components.

        Returns:
            The handler's result, or None if no handler is registered.
            Exceptions raised by the handler propagate unchanged.
        """
        hooks = self._hooks.get(type(event), [])
        await asyncio.gather(*(hook(event, deps) for hook in hooks))

        handler = self._subscribers.get(type(event))
        if handler is None:
            return None
        return await handler(event, deps)
