"""
Vesper Telemetry Schemas
========================

Bounded Context: Data Structures

Immutable, typed data structures carried through the dispatch pipeline.

Design:
- Frozen dataclasses (immutability)
- Read-only mappings for parameters and attributes
- to_dict() for JSON serialization

Public API
----------
Common Types:
    Timestamp: ISO 8601 timestamp wrapper

Event Types:
    Event: Call-site analytics event
    EnrichedEvent: Event merged with dispatch-time attributes
"""

from .common import Timestamp, freeze_mapping
from .event import Event, EnrichedEvent

__all__ = [
    'Timestamp',
    'freeze_mapping',
    'Event',
    'EnrichedEvent',
]
