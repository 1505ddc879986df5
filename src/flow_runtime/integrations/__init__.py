"""External system integrations"""

from .event_bus import EventBus, Event, STEP_UPDATE_TOPIC, EXECUTION_COMPLETE_TOPIC

__all__ = [
    "EventBus",
    "Event",
    "STEP_UPDATE_TOPIC",
    "EXECUTION_COMPLETE_TOPIC"
]
