"""
WebSocket transport for the event relay.

Each socket gets a QueueConnection: the relay pushes messages into an
asyncio queue (safe to call from any thread), and a per-socket pump
task drains the queue onto the wire in order.
"""

from __future__ import annotations
from typing import Any
import asyncio
import logging

from fastapi import WebSocket

from ..relay import Connection, ConnectionClosed

logger = logging.getLogger(__name__)


class QueueConnection(Connection):
    """Relay connection backed by an asyncio queue on one event loop."""

    def __init__(self, connection_id: str, loop: asyncio.AbstractEventLoop):
        super().__init__(connection_id)
        self.loop = loop
        self.queue: asyncio.Queue[dict[str, Any]] = asyncio.Queue()
        self.closed = False

    def send(self, message: dict[str, Any]) -> None:
        if self.closed:
            raise ConnectionClosed(self.connection_id)
        try:
            self.loop.call_soon_threadsafe(self.queue.put_nowait, message)
        except RuntimeError as e:
            self.closed = True
            raise ConnectionClosed(self.connection_id) from e

    def close(self) -> None:
        self.closed = True


async def pump(websocket: WebSocket, connection: QueueConnection) -> None:
    """Forward queued messages to the socket until it goes away."""
    while True:
        message = await connection.queue.get()
        try:
            await websocket.send_json(message)
        except Exception as e:
            logger.debug("Send to %s failed: %s", connection.connection_id, e)
            connection.close()
            return
