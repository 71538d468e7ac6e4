"""
Attribute enrichment for telemetry events.

An enricher produces the common attributes merged into every event at
dispatch time (session id, device, network, timestamps). The dispatcher calls
get_attributes() once per dispatch and never caches the result, so values
such as the session id or IP address are as fresh as the moment of delivery.
"""

import platform
import socket
import uuid
import threading
import logging
from abc import ABC, abstractmethod
from datetime import datetime, timezone
from typing import Any, Callable, Dict, Mapping, Optional

logger = logging.getLogger(__name__)


class AttributeEnricher(ABC):
    """Synchronous provider of common event attributes."""

    @abstractmethod
    def get_attributes(self) -> Dict[str, Any]:
        """Return a fresh mapping of attribute name to value."""
        raise NotImplementedError


class StaticAttributeEnricher(AttributeEnricher):
    """Returns a copy of a fixed mapping on every call."""

    def __init__(self, attributes: Optional[Mapping[str, Any]] = None):
        self._attributes = dict(attributes or {})

    def get_attributes(self) -> Dict[str, Any]:
        return dict(self._attributes)


class CallableAttributeEnricher(AttributeEnricher):
    """Adapts a zero-argument callable returning a mapping."""

    def __init__(self, fn: Callable[[], Mapping[str, Any]]):
        self._fn = fn

    def get_attributes(self) -> Dict[str, Any]:
        return dict(self._fn())


class CompositeAttributeEnricher(AttributeEnricher):
    """Merges several enrichers in order; later enrichers win on collision."""

    def __init__(self, *enrichers: AttributeEnricher):
        self._enrichers = tuple(enrichers)

    def get_attributes(self) -> Dict[str, Any]:
        attributes: Dict[str, Any] = {}
        for enricher in self._enrichers:
            attributes.update(enricher.get_attributes())
        return attributes


class SessionAttributeEnricher(AttributeEnricher):
    """
    Process-level context attributes.

    Attributes produced:
        session_id: UUID4 for the current session (rotated by new_session())
        device_id: Configured device identifier (falls back to hostname)
        platform: OS name (e.g., "Linux")
        os_version: OS release string
        hostname: Network hostname
        ip_address: Primary outbound IPv4 address, None when offline
        app_version: Application version
        sent_at: ISO 8601 UTC timestamp of this call

    Thread Safety:
        session_id reads/rotation are guarded by a lock; everything else is
        computed per call.
    """

    def __init__(
        self,
        app_version: str,
        device_id: Optional[str] = None,
        clock: Callable[[], datetime] = lambda: datetime.now(timezone.utc),
        resolve_ip: bool = True
    ):
        self.app_version = app_version
        self.device_id = device_id
        self.resolve_ip = resolve_ip
        self._clock = clock
        self._session_lock = threading.Lock()
        self._session_id = str(uuid.uuid4())

    @property
    def session_id(self) -> str:
        with self._session_lock:
            return self._session_id

    def new_session(self) -> str:
        """Start a new session (e.g., after user login) and return its id."""
        with self._session_lock:
            self._session_id = str(uuid.uuid4())
            return self._session_id

    def get_attributes(self) -> Dict[str, Any]:
        hostname = socket.gethostname()
        return {
            'session_id': self.session_id,
            'device_id': self.device_id or hostname,
            'platform': platform.system(),
            'os_version': platform.release(),
            'hostname': hostname,
            'ip_address': self._local_ip() if self.resolve_ip else None,
            'app_version': self.app_version,
            'sent_at': self._clock().isoformat(),
        }

    @staticmethod
    def _local_ip() -> Optional[str]:
        """
        Best-effort primary IPv4 address.

        A UDP connect() sends no packets; it only asks the kernel which
        interface would route to the given address.
        """
        sock = socket.socket(socket.AF_INET, socket.SOCK_DGRAM)
        try:
            sock.connect(("10.255.255.255", 1))
            return sock.getsockname()[0]
        except OSError as e:
            logger.debug(f"Could not resolve local IP address: {e}")
            return None
        finally:
            sock.close()
