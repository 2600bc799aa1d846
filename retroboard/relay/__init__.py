"""
Relay Module - Real-time synchronization protocol.

Connections send commands; the relay turns them into manager calls
and fans the resulting events out to every connection in the room.
Failures go back to the sender only.
"""

from .commands import CommandType, COMMAND_MODELS
from .events import EventType, event, error_event
from .rooms import Connection, ConnectionClosed, RoomRegistry
from .relay import EventRelay, ConnectionContext

__all__ = [
    "CommandType",
    "COMMAND_MODELS",
    "EventType",
    "event",
    "error_event",
    "Connection",
    "ConnectionClosed",
    "RoomRegistry",
    "EventRelay",
    "ConnectionContext",
]
