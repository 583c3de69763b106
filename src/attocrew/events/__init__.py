"""Event fan-out for crew observers."""

from attocrew.events.bus import EventBroadcaster

__all__ = ["EventBroadcaster"]
