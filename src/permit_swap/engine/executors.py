"""
Event chain execution engine.

Provides sequential, forward-only workflow orchestration on top of EventBus:
each stage event is dispatched, its result checked against the stage
transition table, and the result becomes the next event until a terminal
event is reached.
"""

from typing import AsyncGenerator

from .events import BaseEvent, EventBus, Dependencies, STAGE_TRANSITIONS, is_terminal
from .exceptions import InvalidTransition


class EventChain:
    """Executes the swap stages by chaining event handler results.

    Any exception raised by a handler aborts the chain and propagates to the
    caller of ``execute``; no later stage is dispatched.
    """

    def __init__(
        self,
        event_bus: EventBus,
        deps: Dependencies,
    ) -> None:
        """
        Initialize event chain executor.

        Args:
            event_bus: The event bus to dispatch events through.
            deps: Dependencies container to pass to handlers.
        """
        self.event_bus = event_bus
        self.deps = deps

    async def execute(self, initial_event: BaseEvent) -> AsyncGenerator[BaseEvent, None]:
        """
        Execute event chain starting from initial event.

        Yields:
            Each stage result, in order, ending with the terminal event.

        Raises:
            InvalidTransition: If a stage has no handler, or its handler
                returns nothing or anything but the permitted successor event.
        """
        event = initial_event
        while not is_terminal(event):
            if not self.event_bus.has_handler(type(event)):
                raise InvalidTransition(
                    f"No handler for {type(event).__name__}; "
                    f"expected one producing {STAGE_TRANSITIONS[type(event)].__name__}",
                    current_state=type(event),
                )
            result = await self.event_bus.dispatch(event, self.deps)
            self._check_transition(event, result)
            yield result
            event = result

    @staticmethod
    def _check_transition(event: BaseEvent, result: object) -> None:
        expected = STAGE_TRANSITIONS[type(event)]
        if result is None:
            raise InvalidTransition(
                f"No result for {type(event).__name__}; expected {expected.__name__}",
                current_state=type(event),
            )
        if type(result) is not expected:
            raise InvalidTransition(
                f"{type(event).__name__} must be followed by {expected.__name__}, "
                f"handler returned {type(result).__name__}",
                current_state=type(event),
                produced=type(result),
            )
