"""Domain event delivery."""

from .event_bus import DomainEventBus, EventHandler

__all__ = ["DomainEventBus", "EventHandler"]
