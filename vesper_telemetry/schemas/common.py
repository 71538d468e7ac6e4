"""
Common Schema Types
==================

Bounded Context: Shared Data Structures

Types:
- Timestamp: ISO 8601 timestamp wrapper
- freeze_mapping: read-only snapshot of a caller-supplied mapping
"""

from dataclasses import dataclass
from datetime import datetime, timezone
from types import MappingProxyType
from typing import Any, Mapping, Optional


@dataclass(frozen=True)
class Timestamp:
    """
    Immutable ISO 8601 timestamp wrapper (UTC).

    Attributes:
        value: ISO 8601 formatted timestamp string

    Example:
        >>> ts = Timestamp.now()
        >>> ts.value
        '2025-10-24T15:30:45.123456+00:00'
    """
    value: str

    @classmethod
    def now(cls) -> 'Timestamp':
        """Create timestamp from current time."""
        return cls(value=datetime.now(timezone.utc).isoformat())

    @classmethod
    def from_datetime(cls, dt: datetime) -> 'Timestamp':
        """Create timestamp from datetime object."""
        return cls(value=dt.isoformat())

    def to_datetime(self) -> datetime:
        """Parse to datetime object.

        Raises:
            ValueError: If timestamp format invalid
        """
        try:
            return datetime.fromisoformat(self.value)
        except ValueError as e:
            raise ValueError(f"Invalid ISO timestamp: {self.value}") from e

    def to_dict(self) -> str:
        """Serialize to JSON (as string)."""
        return self.value


def freeze_mapping(data: Optional[Mapping[str, Any]]) -> Mapping[str, Any]:
    """
    Copy a mapping into a read-only view.

    The copy detaches the result from the caller's dict, so later mutation
    at the call site cannot leak into an event already handed off.
    """
    return MappingProxyType(dict(data or {}))
