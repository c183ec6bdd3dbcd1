"""GigVault in-process event bus."""

from gigvault.core.event.bus import EventBus, EventListener, EventPayload

__all__ = ["EventBus", "EventListener", "EventPayload"]
