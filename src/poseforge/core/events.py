"""EventBus for decoupled publish/subscribe communication."""

from enum import Enum, auto
from typing import Any, Callable
from collections import defaultdict


class EventType(Enum):
    # Lifecycle
    RIG_INITIALIZED = auto()      # data: result (InitializationResult)
    NEUTRAL_CALIBRATED = auto()   # data: result (CalibrationResult)
    BIOMECH_RESET = auto()

    # Frame events
    JOINTS_UPDATED = auto()       # data: result (UpdateResult), state (ModelState)
    ROM_VIOLATION = auto()        # data: violations (list[RomViolation])

    # Writes to the rig
    COORDINATES_APPLIED = auto()  # data: joint_id (str), values (tuple)
    RHYTHM_APPLIED = auto()       # data: coupling (RhythmCoupling), split (RhythmSplit)


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
