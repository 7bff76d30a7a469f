"""Security log for authentication and two-factor events."""

from __future__ import annotations

from .events import SecurityAction, SecurityEvent
from .memory import InMemorySecurityLogStore
from .recorder import ClientContext, SecurityLogger

__all__: list[str] = [
    "SecurityAction",
    "SecurityEvent",
    "InMemorySecurityLogStore",
    "ClientContext",
    "SecurityLogger",
]
