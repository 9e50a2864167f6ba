"""Conversion server: aiohttp application, lifecycle and signal handling.

Exports:
    DaemonLifecycle: Startup/shutdown state and in-flight tracking
    ShutdownState: Shutdown progress
    HealthStatus: Payload of GET /health
    create_app: Application factory
"""

from vconv.server.app import HealthStatus, create_app
from vconv.server.lifecycle import DaemonLifecycle, ShutdownState

__all__ = [
    "DaemonLifecycle",
    "HealthStatus",
    "ShutdownState",
    "create_app",
]
