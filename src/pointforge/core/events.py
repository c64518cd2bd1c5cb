"""EventBus for decoupled publish/subscribe communication."""

import logging
from collections import defaultdict
from enum import Enum, auto
from typing import Any, Callable

logger = logging.getLogger(__name__)


class EventType(Enum):
    # Model outputs, published in this order after every recomputation
    RAY_CHANGED = auto()        # data: ray (Transform | None)
    POINTER_CHANGED = auto()    # data: pointer (Transform | None)
    FINGER_CHANGED = auto()     # data: finger (Transform | None)
    OUTPUT_CHANGED = auto()     # data: output (PointingOutput)

    # Model inputs, published after the recomputation they trigger
    BODY_HEIGHT_CHANGED = auto()   # data: body_height (float)
    HANDEDNESS_CHANGED = auto()    # data: point_with (Handedness)
    SURFACE_CHANGED = auto()       # data: surface (Surface)


class EventBus:
    """Simple publish/subscribe event system.

    A handler that raises is logged and skipped; the remaining handlers
    still receive the event.
    """

    def __init__(self):
        self._handlers: dict[EventType, list[Callable]] = defaultdict(list)

    def subscribe(self, event_type: EventType, handler: Callable) -> None:
        self._handlers[event_type].append(handler)

    def unsubscribe(self, event_type: EventType, handler: Callable) -> None:
        handlers = self._handlers[event_type]
        if handler in handlers:
            handlers.remove(handler)

    def publish(self, event_type: EventType, **data: Any) -> None:
        # Copy so handlers may unsubscribe while being notified
        for handler in list(self._handlers[event_type]):
            try:
                handler(**data)
            except Exception:
                logger.exception("Handler %r failed for %s", handler, event_type.name)

    def clear(self) -> None:
        self._handlers.clear()
