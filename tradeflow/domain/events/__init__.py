"""Engine events."""

from .event_types import EventType, BUNDLE_MUTATION_EVENTS

__all__ = ["EventType", "BUNDLE_MUTATION_EVENTS"]
