"""Starlette web adapter serving the signaling websocket."""

from __future__ import annotations

import logging
import uuid
from typing import TYPE_CHECKING, Any

from pydantic import ValidationError
from starlette.applications import Starlette
from starlette.responses import JSONResponse, Response
from starlette.routing import Route, WebSocketRoute

from chat_signaling.adapters.config import AppConfig
from chat_signaling.domain.models import signaling_events as events
from chat_signaling.domain.models.signaling_messages import Envelope, ErrorMessage

from .client_info import get_client_info_from_scope, get_user_id_from_scope
from .rate_limit_middleware import EventRateLimiter, RateLimitMiddleware

if TYPE_CHECKING:
    from starlette.requests import Request
    from starlette.websockets import WebSocket

    from chat_signaling.domain.contracts.presence_registry import PresenceRegistryProtocol
    from chat_signaling.domain.ports import SignalingHandler

    from .connection_hub import ConnectionHub

logger = logging.getLogger(__name__)

# Close code for connections that do not identify a user
MISSING_USER_ID_CLOSE_CODE = 4001
# Close code sent to every connection by the admin reset endpoint (service restart)
RESET_CLOSE_CODE = 1012


class SignalingWebAdapter:
    """Serves the signaling websocket and a small HTTP surface."""

    def __init__(
        self,
        handler: SignalingHandler,
        hub: ConnectionHub,
        presence: PresenceRegistryProtocol,
        config: AppConfig,
    ) -> None:
        """Initialize the web adapter.

        Args:
            handler: Server-side signaling handler receiving connection events.
            hub: Outbound delivery to live websockets.
            presence: Presence registry backing ``GET /online``.
            config: Application configuration.
        """
        if not isinstance(config, AppConfig):
            raise TypeError("config must be an AppConfig instance")

        self.handler = handler
        self.hub = hub
        self.presence = presence
        self.config = config
        self._server: Any | None = None

    def create_app(self) -> Any:
        """Build the ASGI application wrapped in rate limiting middleware."""
        app = Starlette(
            routes=[
                WebSocketRoute(self.config.websocket_path, self._signaling_socket),
                Route("/healthz", self._healthz, methods=["GET"]),
                Route("/online", self._online, methods=["GET"]),
                Route("/admin/reset-connections", self._reset_connections, methods=["POST"]),
            ]
        )
        return RateLimitMiddleware(app, requests_per_minute=self.config.rate_limit_per_minute)

    async def start(self) -> None:
        """Start the web server."""
        import uvicorn

        config = uvicorn.Config(
            self.create_app(),
            host=self.config.host,
            port=self.config.port,
            log_level=self.config.log_level.lower(),
        )
        self._server = uvicorn.Server(config)
        logger.info(
            f"Signaling server listening on {self.config.host}:{self.config.port}"
            f"{self.config.websocket_path}"
        )
        await self._server.serve()

    async def stop(self) -> None:
        """Stop the web server."""
        await self.hub.close_all(code=RESET_CLOSE_CODE)
        if self._server:
            self._server.should_exit = True

    # ------------------------------------------------------------------
    # Websocket
    # ------------------------------------------------------------------

    async def _signaling_socket(self, websocket: WebSocket) -> None:
        await websocket.accept()
        user_id = get_user_id_from_scope(websocket.scope)
        client = get_client_info_from_scope(websocket.scope)
        if user_id is None:
            logger.warning(f"Rejecting connection without userId from {client.ip}")
            await websocket.close(code=MISSING_USER_ID_CLOSE_CODE)
            return

        handle = uuid.uuid4().hex
        limiter = EventRateLimiter(handle, self.config.signaling_events_per_minute)
        logger.info(
            f"Connection {handle} opened for {user_id} from {client.ip} ({client.user_agent})"
        )

        self.hub.attach(handle, websocket)
        try:
            await self.handler.connect(user_id, handle)
            while True:
                message = await websocket.receive()
                if message["type"] == "websocket.disconnect":
                    break
                raw = message.get("text") or message.get("bytes") or ""
                await self._handle_frame(user_id, handle, raw, limiter)
        finally:
            await self.hub.detach(handle)
            await self.handler.disconnect(handle)
            logger.info(f"Connection {handle} closed for {user_id}")

    async def _handle_frame(
        self, user_id: str, handle: str, raw: str | bytes, limiter: EventRateLimiter
    ) -> None:
        if not limiter.allow():
            await self.hub.send(
                handle, events.ERROR, ErrorMessage(message="Rate limit exceeded").to_wire()
            )
            return

        try:
            envelope = Envelope.model_validate_json(raw)
        except ValidationError:
            logger.warning(f"Dropping malformed frame from {user_id} on {handle}")
            return

        try:
            await self.handler.handle(user_id, handle, envelope.event, envelope.data)
        except Exception:
            logger.exception(f"Failed to handle '{envelope.event}' from {user_id}")

    # ------------------------------------------------------------------
    # HTTP
    # ------------------------------------------------------------------

    async def _healthz(self, _request: Request) -> Response:
        """Health check endpoint for load balancers and monitoring."""
        return Response(content="Ok", media_type="text/plain")

    async def _online(self, _request: Request) -> Response:
        return JSONResponse(sorted(self.presence.snapshot()))

    async def _reset_connections(self, request: Request) -> Response:
        """Close every signaling connection.

        Guarded by the X-Admin-Token header. Each closed connection runs the
        normal disconnect path, so presence and group rosters are cleaned up.
        Typical usage:
            curl -X POST http://localhost:8000/admin/reset-connections \\
                 -H "X-Admin-Token: $ADMIN_COMMAND_TOKEN"
        """
        expected_token = self.config.admin_command_token
        if not expected_token:
            return JSONResponse(
                {"error": "admin endpoint disabled - ADMIN_COMMAND_TOKEN not configured"},
                status_code=503,
            )

        provided_token = request.headers.get("X-Admin-Token", "")
        if provided_token != expected_token:
            logger.warning("Unauthorized attempt to call reset_connections admin endpoint")
            return JSONResponse({"error": "forbidden"}, status_code=403)

        closed = await self.hub.close_all(code=RESET_CLOSE_CODE)
        logger.info(f"Admin reset_connections completed: disconnected_sockets={closed}")
        return JSONResponse({"status": "ok", "disconnected_sockets": closed})
