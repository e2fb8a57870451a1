"""EventBus for decoupled publish/subscribe communication."""

from enum import Enum, auto
from typing import Any, Callable
from collections import defaultdict


class EventType(Enum):
    # Raw estimate of one frame, ready for peer transport
    SKELETON_DATA = auto()        # data: pose (Pose), face (FaceFrame | None)

    # Frame results
    FRAME_UPDATED = auto()        # data: paths (list[RenderPath]), frame_index (int)
    FRAME_INVALID = auto()        # data: frame_index (int), reason (str)

    # Driver lifecycle
    DRIVER_STARTED = auto()
    DRIVER_STOPPED = auto()       # data: frames (int)


class EventBus:
    """Simple publish/subscribe event system."""

    def __init__(self):
        self._handlers: dict[EventType, list[Callable]] = defaultdict(list)

    def subscribe(self, event_type: EventType, handler: Callable) -> None:
        self._handlers[event_type].append(handler)

    def unsubscribe(self, event_type: EventType, handler: Callable) -> None:
        handlers = self._handlers[event_type]
        if handler in handlers:
            handlers.remove(handler)

    def publish(self, event_type: EventType, **data: Any) -> None:
        for handler in list(self._handlers[event_type]):
            handler(**data)

    def clear(self) -> None:
        self._handlers.clear()
