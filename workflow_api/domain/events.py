"""Domain events for decoupled side effects and integrations."""
from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Callable, Dict, List
from uuid import uuid4

logger = logging.getLogger(__name__)


@dataclass
class DomainEvent:
    """Base class for all domain events."""
    event_id: str
    timestamp: datetime
    aggregate_id: str

    def __post_init__(self):
        if not self.event_id:
            self.event_id = str(uuid4())
        if not self.timestamp:
            self.timestamp = datetime.now()

    @classmethod
    def new(cls, aggregate_id: str, **fields):
        """Build an event with a fresh id and the current time."""
        return cls(event_id=str(uuid4()), timestamp=datetime.now(), aggregate_id=aggregate_id, **fields)


@dataclass
class WorkflowCreated(DomainEvent):
    """Raised when a new workflow is created."""
    name: str


@dataclass
class WorkflowDeleted(DomainEvent):
    """Raised when a workflow is deleted."""
    name: str


@dataclass
class WorkflowSaved(DomainEvent):
    """Raised when a graph save is accepted."""
    version: int
    node_count: int
    edge_count: int
    warning_count: int


@dataclass
class WorkflowSaveRejected(DomainEvent):
    """Raised when a graph save is refused by validation."""
    expected_version: int
    error_count: int


class DomainEventPublisher:
    """Singleton publisher for domain events."""

    _instance: DomainEventPublisher | None = None
    _subscribers: Dict[type, List[Callable[[DomainEvent], None]]]

    def __new__(cls):
        if cls._instance is None:
            cls._instance = super().__new__(cls)
            cls._instance._subscribers = {}
        return cls._instance

    def subscribe(self, event_type: type[DomainEvent], handler: Callable[[DomainEvent], None]) -> None:
        """Subscribe a handler to an event type."""
        handlers = self._subscribers.setdefault(event_type, [])
        if handler not in handlers:
            handlers.append(handler)

    def publish(self, event: DomainEvent) -> None:
        """Publish an event to all subscribers."""
        for handler in self._subscribers.get(type(event), []):
            try:
                handler(event)
            except Exception:
                # Log error but don't fail the main operation
                logger.exception(f"Event handler failed for {type(event).__name__}")

    def clear_subscribers(self) -> None:
        """Clear all subscribers (useful for testing)."""
        self._subscribers = {}


# Singleton instance
event_publisher = DomainEventPublisher()
