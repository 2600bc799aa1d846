"""
Rooms - Publish/subscribe registry of connections, keyed by session id.

A connection subscribes when it joins a session and unsubscribes when
it disconnects. publish() delivers to members in subscription order,
so every member of a room sees the same sequence of messages as long
as publishes are serialized by the caller.
"""

from __future__ import annotations
from abc import ABC, abstractmethod
from typing import Any
import logging
import threading

logger = logging.getLogger(__name__)


class ConnectionClosed(Exception):
    """Raised by Connection.send() when the peer is gone."""


class Connection(ABC):
    """One client connection on the event stream."""

    def __init__(self, connection_id: str):
        self.connection_id = connection_id

    @abstractmethod
    def send(self, message: dict[str, Any]) -> None:
        """Queue a message for this connection. Must not block."""


class RoomRegistry:
    """
    Explicit subscription state for broadcast fan-out.

    Usage:
        rooms = RoomRegistry()
        rooms.subscribe("a1b2c3d4", connection)
        rooms.publish("a1b2c3d4", {"type": "item-added", "payload": {...}})
        rooms.unsubscribe("a1b2c3d4", connection)
    """

    def __init__(self):
        self._rooms: dict[str, dict[str, Connection]] = {}
        self._lock = threading.Lock()

    def subscribe(self, room: str, connection: Connection) -> None:
        with self._lock:
            self._rooms.setdefault(room, {})[connection.connection_id] = connection

    def unsubscribe(self, room: str, connection: Connection) -> None:
        with self._lock:
            members = self._rooms.get(room)
            if not members:
                return
            members.pop(connection.connection_id, None)
            if not members:
                del self._rooms[room]

    def members(self, room: str) -> list[Connection]:
        with self._lock:
            return list(self._rooms.get(room, {}).values())

    def publish(self, room: str, message: dict[str, Any]) -> int:
        """Send a message to every member of a room. Returns deliveries."""
        delivered = 0
        dead_connections = []
        for connection in self.members(room):
            try:
                connection.send(message)
                delivered += 1
            except ConnectionClosed:
                dead_connections.append(connection)

        for connection in dead_connections:
            logger.warning("Dropping closed connection %s from room %s",
                           connection.connection_id, room)
            self.unsubscribe(room, connection)
        return delivered
