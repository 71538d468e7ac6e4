"""
Telemetry Event Schemas
=======================

Bounded Context: Analytics Event Data Structures

Types:
- Event: one logged occurrence, created at the call site
- EnrichedEvent: Event parameters overlaid on dispatch-time attributes

Lifecycle:
    call site → Event.create() → dispatcher worker → EnrichedEvent.merge()
    → every backend of that fan-out (read-only) → discarded

Invariants:
- Neither type is mutated after creation (frozen dataclasses, read-only
  mappings).
- In an EnrichedEvent, event parameters win over enrichment attributes with
  the same key.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, Mapping, Optional

from .common import Timestamp, freeze_mapping


@dataclass(frozen=True)
class Event:
    """
    Immutable analytics event.

    Attributes:
        category: Event category (e.g., "player"), may be None
        action: Event action identifier (e.g., "play")
        parameters: Event-specific key/value pairs (read-only)
        timestamp: Creation time at the call site

    Example:
        >>> event = Event.create("player", "play", {"assetId": "42"})
        >>> event.parameters["assetId"]
        '42'
    """
    category: Optional[str]
    action: str
    parameters: Mapping[str, Any] = field(default_factory=dict)
    timestamp: Timestamp = field(default_factory=Timestamp.now)

    def __post_init__(self):
        # frozen: bypass __setattr__ to store the detached read-only copy
        object.__setattr__(self, 'parameters', freeze_mapping(self.parameters))

    @classmethod
    def create(
        cls,
        category: Optional[str],
        action: str,
        parameters: Optional[Mapping[str, Any]] = None
    ) -> 'Event':
        """Build an event stamped with the current time."""
        return cls(
            category=category,
            action=action,
            parameters=parameters or {},
        )

    def to_dict(self) -> Dict[str, Any]:
        """Serialize to JSON-compatible dict."""
        return {
            'category': self.category,
            'action': self.action,
            'parameters': dict(self.parameters),
            'timestamp': self.timestamp.to_dict(),
        }


@dataclass(frozen=True)
class EnrichedEvent:
    """
    Event ready for delivery: enrichment attributes merged with parameters.

    Computed once per dispatch and shared by every backend in that fan-out,
    so backends must treat it as read-only and must not keep it.

    Attributes:
        category: Category of the source event
        action: Action of the source event
        attributes: Merged key/value pairs (read-only)
        timestamp: Creation time of the source event
    """
    category: Optional[str]
    action: str
    attributes: Mapping[str, Any]
    timestamp: Timestamp

    def __post_init__(self):
        object.__setattr__(self, 'attributes', freeze_mapping(self.attributes))

    @classmethod
    def merge(
        cls,
        event: Event,
        enrichment: Optional[Mapping[str, Any]] = None
    ) -> 'EnrichedEvent':
        """
        Overlay the event's parameters on the enrichment attributes.

        Args:
            event: Source event
            enrichment: Attributes from the enricher at dispatch time

        Returns:
            EnrichedEvent whose attributes contain every enrichment key and
            every event key, event keys taking precedence

        Example:
            >>> e = Event.create("player", "play", {"assetId": "42"})
            >>> EnrichedEvent.merge(e, {"session": "abc"}).attributes
            mappingproxy({'session': 'abc', 'assetId': '42'})
        """
        attributes = dict(enrichment or {})
        attributes.update(event.parameters)
        return cls(
            category=event.category,
            action=event.action,
            attributes=attributes,
            timestamp=event.timestamp,
        )

    def to_dict(self) -> Dict[str, Any]:
        """Serialize to JSON-compatible dict."""
        return {
            'category': self.category,
            'action': self.action,
            'attributes': dict(self.attributes),
            'timestamp': self.timestamp.to_dict(),
        }
