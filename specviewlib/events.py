"""Browser notifications.

Handlers run synchronously on the event-loop thread, in subscription
order, with the event's fields as keyword arguments:

=====================  ==============================
``selection.changed``  ``index``, ``recording``
``width.changed``      ``old``, ``new``
``config.changed``     ``config``
``render.complete``    ``result``
``render.failed``      ``recording``, ``error``
=====================  ==============================
"""

from __future__ import annotations

from collections import defaultdict
from typing import Any, Callable

SELECTION_CHANGED = "selection.changed"
WIDTH_CHANGED = "width.changed"
CONFIG_CHANGED = "config.changed"
RENDER_COMPLETE = "render.complete"
RENDER_FAILED = "render.failed"

EVENT_TYPES = frozenset({
    SELECTION_CHANGED, WIDTH_CHANGED, CONFIG_CHANGED, RENDER_COMPLETE, RENDER_FAILED,
})

Handler = Callable[..., Any]


class EventBus:
    def __init__(self) -> None:
        self._handlers: defaultdict[str, list[Handler]] = defaultdict(list)

    def subscribe(self, event_type: str, handler: Handler) -> Callable[[], None]:
        """Register *handler*; returns a callable that removes it again."""
        if event_type not in EVENT_TYPES:
            raise ValueError(f"Unknown event type '{event_type}'")
        self._handlers[event_type].append(handler)

        def unsubscribe() -> None:
            if handler in self._handlers[event_type]:
                self._handlers[event_type].remove(handler)
        return unsubscribe

    def emit(self, event_type: str, **data: Any) -> None:
        # copy: a handler may unsubscribe itself
        for handler in list(self._handlers.get(event_type, ())):
            handler(**data)
