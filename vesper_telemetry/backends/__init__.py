"""
Telemetry backends.

Only the Backend contract is exported here, for applications that register
their own backends through build_dispatcher(extra_backends=...). The built-in
MQTT and logging backends and the MQTT transport are constructed inside
vesper_telemetry.runtime.build_dispatcher() and invoked only by the
EventDispatcher.
"""

from .base import Backend

__all__ = [
    'Backend',
]
