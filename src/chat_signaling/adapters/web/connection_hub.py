"""Per-connection outbound queues implementing the message relay."""

from __future__ import annotations

import asyncio
import contextlib
import logging
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from starlette.websockets import WebSocket

    from chat_signaling.domain.contracts.presence_registry import PresenceRegistryProtocol

logger = logging.getLogger(__name__)


class _Connection:
    """A websocket plus the task draining its outbound queue."""

    def __init__(self, handle: str, websocket: WebSocket, queue_size: int) -> None:
        self.handle = handle
        self.websocket = websocket
        self.queue: asyncio.Queue[dict[str, Any]] = asyncio.Queue(maxsize=queue_size)
        self.writer: asyncio.Task | None = None

    async def write_loop(self) -> None:
        try:
            while True:
                frame = await self.queue.get()
                await self.websocket.send_json(frame)
        except Exception as e:
            logger.debug(f"Writer for connection {self.handle} stopped: {e}")


class ConnectionHub:
    """Delivers events to live websocket connections.

    Each connection gets a FIFO queue drained by its own writer task, so
    frames sent to one connection arrive in send order and a slow connection
    never blocks delivery to the others.
    """

    def __init__(self, presence: PresenceRegistryProtocol, queue_size: int = 256) -> None:
        """Initialize the hub.

        Args:
            presence: Registry used to resolve user ids to handles.
            queue_size: Maximum queued frames per connection before dropping.
        """
        self.presence = presence
        self.queue_size = queue_size
        self._connections: dict[str, _Connection] = {}

    def attach(self, handle: str, websocket: WebSocket) -> None:
        """Start delivering frames to a newly accepted websocket."""
        if handle in self._connections:
            logger.warning(f"Connection {handle} already attached")
            return
        connection = _Connection(handle, websocket, self.queue_size)
        connection.writer = asyncio.create_task(connection.write_loop())
        self._connections[handle] = connection
        logger.debug(f"Attached connection {handle}, total: {len(self._connections)}")

    async def detach(self, handle: str) -> None:
        """Stop delivering frames to a connection and drop its queue."""
        connection = self._connections.pop(handle, None)
        if connection is None:
            return
        if connection.writer is not None:
            connection.writer.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await connection.writer
        logger.debug(f"Detached connection {handle}, total: {len(self._connections)}")

    async def send(self, handle: str, event: str, payload: Any) -> bool:
        connection = self._connections.get(handle)
        if connection is None:
            logger.debug(f"Dropping '{event}' for closed connection {handle}")
            return False
        try:
            connection.queue.put_nowait({"event": event, "data": payload})
        except asyncio.QueueFull:
            logger.warning(f"Outbound queue full for connection {handle}; dropping '{event}'")
            return False
        return True

    async def send_to_user(self, user_id: str, event: str, payload: Any) -> int:
        delivered = 0
        for handle in self.presence.resolve(user_id):
            if await self.send(handle, event, payload):
                delivered += 1
        return delivered

    async def broadcast(self, event: str, payload: Any) -> int:
        delivered = 0
        for handle in list(self._connections):
            if await self.send(handle, event, payload):
                delivered += 1
        return delivered

    async def close_all(self, code: int = 1012) -> int:
        """Close every attached websocket.

        Returns:
            Number of connections closed.
        """
        closed = 0
        for connection in list(self._connections.values()):
            try:
                await connection.websocket.close(code=code)
                closed += 1
            except Exception as e:
                logger.warning(f"Failed to close connection {connection.handle}: {e}")
        return closed

    @property
    def handles(self) -> list[str]:
        return list(self._connections)

    def __len__(self) -> int:
        return len(self._connections)
