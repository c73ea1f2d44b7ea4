"""
Test suite for EventChain execution engine.
Tests: 1) Stage execution order 2) Forward-only transition checks 3) Error propagation
"""
import pytest

from permit_swap.engine.events import (
    EventBus,
    Dependencies,
    SwapRequestedEvent,
    AllowanceReadyEvent,
    NonceResolvedEvent,
    PermitBuiltEvent,
    PermitVerifiedEvent,
    RouteFoundEvent,
    TransactionAssembledEvent,
    STAGE_TRANSITIONS,
    is_terminal,
)
from permit_swap.engine.executors import EventChain
from permit_swap.engine.exceptions import InvalidTransition, RouteNotFound
from permit_swap.evm.constants import build_swap_config, get_token
from permit_swap.evm.schemas import AllowanceCheck, PERMIT2_ADDRESS


OWNER = "0x1234567890123456789012345678901234567890"
SOURCE = get_token(11155111, "USDC")
DEST = get_token(11155111, "WETH")


@pytest.fixture
def deps():
    return Dependencies(config=build_swap_config(chain_id=11155111, wallet_address=OWNER))


@pytest.fixture
def request_event():
    return SwapRequestedEvent(source=SOURCE, dest=DEST, amount=1_000_000)


def allowance_check() -> AllowanceCheck:
    return AllowanceCheck(token=SOURCE.address, owner=OWNER, spender=PERMIT2_ADDRESS, allowance=10**6)


async def handle_request(event: SwapRequestedEvent, deps: Dependencies):
    return AllowanceReadyEvent(request=event, allowance=allowance_check())


async def handle_allowance(event: AllowanceReadyEvent, deps: Dependencies):
    return NonceResolvedEvent(request=event.request, allowance=event.allowance, nonce=0)


class TestTransitionTable:

    def test_linear_chain_ends_at_assembled(self):
        event_class = SwapRequestedEvent
        visited = [event_class]
        while event_class in STAGE_TRANSITIONS:
            event_class = STAGE_TRANSITIONS[event_class]
            visited.append(event_class)

        assert visited == [
            SwapRequestedEvent,
            AllowanceReadyEvent,
            NonceResolvedEvent,
            PermitBuiltEvent,
            PermitVerifiedEvent,
            RouteFoundEvent,
            TransactionAssembledEvent,
        ]

    def test_terminal(self, request_event):
        assert not is_terminal(request_event)


class TestEventBus:

    def test_rejects_sync_handler(self):
        bus = EventBus()
        with pytest.raises(TypeError):
            bus.subscribe(SwapRequestedEvent, lambda event, deps: None)

    def test_rejects_second_handler(self):
        bus = EventBus()
        bus.subscribe(SwapRequestedEvent, handle_request)
        with pytest.raises(ValueError):
            bus.subscribe(SwapRequestedEvent, handle_request)

    @pytest.mark.asyncio
    async def test_hooks_run_before_handler(self, deps, request_event):
        calls = []

        async def hook(event, deps):
            calls.append("hook")

        async def handler(event, deps):
            calls.append("handler")
            return await handle_request(event, deps)

        bus = EventBus()
        bus.hook(SwapRequestedEvent, hook)
        bus.subscribe(SwapRequestedEvent, handler)

        result = await bus.dispatch(request_event, deps)

        assert calls == ["hook", "handler"]
        assert isinstance(result, AllowanceReadyEvent)

    def test_has_handler(self):
        bus = EventBus()
        bus.subscribe(SwapRequestedEvent, handle_request)
        assert bus.has_handler(SwapRequestedEvent)
        assert not bus.has_handler(AllowanceReadyEvent)

    @pytest.mark.asyncio
    async def test_dispatch_without_handler_returns_none(self, deps, request_event):
        assert await EventBus().dispatch(request_event, deps) is None


class TestEventChain:

    @pytest.mark.asyncio
    async def test_events_yielded_in_order(self, deps, request_event):
        bus = EventBus()
        bus.subscribe(SwapRequestedEvent, handle_request)
        bus.subscribe(AllowanceReadyEvent, handle_allowance)

        collected = []
        with pytest.raises(InvalidTransition, match="No handler for NonceResolvedEvent"):
            async for event in EventChain(bus, deps).execute(request_event):
                collected.append(type(event))

        assert collected == [AllowanceReadyEvent, NonceResolvedEvent]

    @pytest.mark.asyncio
    async def test_handler_returning_nothing_is_rejected(self, deps, request_event):
        async def silent(event, deps):
            return None

        bus = EventBus()
        bus.subscribe(SwapRequestedEvent, silent)

        with pytest.raises(InvalidTransition, match="No result for SwapRequestedEvent") as exc_info:
            async for _ in EventChain(bus, deps).execute(request_event):
                pass
        assert exc_info.value.produced is None

    @pytest.mark.asyncio
    async def test_skipping_a_stage_is_rejected(self, deps, request_event):
        async def skip_ahead(event, deps):
            return NonceResolvedEvent(request=event, allowance=allowance_check(), nonce=0)

        bus = EventBus()
        bus.subscribe(SwapRequestedEvent, skip_ahead)

        with pytest.raises(InvalidTransition) as exc_info:
            async for _ in EventChain(bus, deps).execute(request_event):
                pass

        assert exc_info.value.current_state is SwapRequestedEvent
        assert exc_info.value.produced is NonceResolvedEvent

    @pytest.mark.asyncio
    async def test_handler_error_propagates_and_stops_chain(self, deps, request_event):
        called = []

        async def failing(event, deps):
            raise RouteNotFound("no liquidity")

        async def never(event, deps):
            called.append(event)

        bus = EventBus()
        bus.subscribe(SwapRequestedEvent, failing)
        bus.subscribe(AllowanceReadyEvent, never)

        with pytest.raises(RouteNotFound):
            async for _ in EventChain(bus, deps).execute(request_event):
                pass
        assert called == []
