"""aiohttp websocket client for the signaling server."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

import aiohttp
from pydantic import ValidationError

from chat_signaling.domain.models.signaling_messages import Envelope

if TYPE_CHECKING:
    from chat_signaling.domain.ports import SignalingEventSink

logger = logging.getLogger(__name__)


class SignalingClient:
    """Connects one user to the signaling server.

    Implements the client signaling channel (``emit``) and feeds received
    frames to a ``SignalingEventSink`` one at a time, each to completion.
    """

    def __init__(
        self,
        base_url: str,
        user_id: str,
        session: aiohttp.ClientSession | None = None,
        websocket_path: str = "/ws",
    ) -> None:
        """Initialize the client.

        Args:
            base_url: Server URL, e.g. ``http://localhost:8000``.
            user_id: Identity to connect as.
            session: Optional aiohttp session; one is created and owned otherwise.
            websocket_path: Path of the signaling websocket.
        """
        self.base_url = base_url.rstrip("/")
        self.user_id = user_id
        self.websocket_path = websocket_path
        self._session = session
        self._owns_session = session is None
        self._ws: aiohttp.ClientWebSocketResponse | None = None

    @property
    def connected(self) -> bool:
        return self._ws is not None and not self._ws.closed

    async def connect(self) -> None:
        """Open the websocket."""
        if self._session is None:
            self._session = aiohttp.ClientSession()
        url = f"{self.base_url}{self.websocket_path}"
        self._ws = await self._session.ws_connect(url, params={"userId": self.user_id})
        logger.info(f"Connected to {url} as {self.user_id}")

    async def emit(self, event: str, payload: dict[str, Any]) -> None:
        ws = self._ws
        if ws is None or ws.closed:
            logger.warning(f"Not connected; dropping '{event}'")
            return
        await ws.send_json({"event": event, "data": payload})

    async def run(self, sink: SignalingEventSink) -> None:
        """Dispatch received frames to ``sink`` until the websocket closes."""
        if self._ws is None:
            raise RuntimeError("connect() must be called before run()")

        async for message in self._ws:
            if message.type == aiohttp.WSMsgType.TEXT:
                await self._dispatch(sink, message.data)
            elif message.type == aiohttp.WSMsgType.ERROR:
                logger.warning(f"Websocket error: {self._ws.exception()}")
                break
        logger.info(f"Websocket closed (code {self._ws.close_code})")

    async def close(self) -> None:
        if self._ws is not None and not self._ws.closed:
            await self._ws.close()
        if self._owns_session and self._session is not None:
            await self._session.close()
            self._session = None

    async def _dispatch(self, sink: SignalingEventSink, raw: str) -> None:
        try:
            envelope = Envelope.model_validate_json(raw)
        except ValidationError:
            logger.warning("Dropping malformed frame from server")
            return
        try:
            await sink.dispatch(envelope.event, envelope.data)
        except Exception:
            logger.exception(f"Failed to handle server event '{envelope.event}'")


async def fetch_online_users(session: aiohttp.ClientSession, base_url: str) -> list[str]:
    """Query a running server's ``GET /online`` endpoint.

    Raises:
        aiohttp.ClientResponseError: If the server answers with an error status.
    """
    async with session.get(f"{base_url.rstrip('/')}/online") as response:
        response.raise_for_status()
        data = await response.json()
    if not isinstance(data, list):
        raise ValueError(f"Unexpected /online response: {data!r}")
    return [str(user_id) for user_id in data]
