"""Utilities for extracting client information from websocket scopes.

Used for connection log lines and for the ``userId`` query parameter that
identifies a signaling connection.
"""

from __future__ import annotations

from typing import Any, NamedTuple
from urllib.parse import parse_qs


class ClientInfo(NamedTuple):
    """Who is on the other end of a connection, for log lines."""

    ip: str
    user_agent: str
    user_id: str


def _decode_header_value(value: Any) -> str:
    """Decode a header value into a readable string."""
    if isinstance(value, bytes):
        return value.decode("utf-8", errors="replace")
    return str(value)


def get_user_id_from_scope(scope: dict[str, Any] | None) -> str | None:
    """Return the ``userId`` query parameter, or None when missing or blank."""
    if not isinstance(scope, dict):
        return None
    query_string = _decode_header_value(scope.get("query_string") or b"")
    values = parse_qs(query_string).get("userId")
    if not values:
        return None
    user_id = values[0].strip()
    return user_id or None


def get_client_info_from_scope(scope: dict[str, Any] | None) -> ClientInfo:
    """Extract client IP, user agent, and user id from an ASGI scope-like mapping.

    Returns:
        ClientInfo(ip, user_agent, user_id). When information is not available, the
        returned values fall back to the string ``"unknown"``.
    """
    if not isinstance(scope, dict):
        return ClientInfo("unknown", "unknown", "unknown")

    user_agent = "unknown"
    forwarded_for: str | None = None

    headers = scope.get("headers") or []
    for name, value in headers:
        decoded_name = _decode_header_value(name).lower()
        if decoded_name == "user-agent":
            user_agent = _decode_header_value(value)
            # Avoid excessively long user agent strings in logs
            if len(user_agent) > 200:
                user_agent = f"{user_agent[:197]}..."
        elif decoded_name == "x-forwarded-for":
            forwarded_for = _decode_header_value(value)

    ip = "unknown"
    if forwarded_for:
        # X-Forwarded-For may contain a list: client, proxy1, proxy2, ...
        first = forwarded_for.split(",")[0].strip()
        if first:
            ip = first
    else:
        client = scope.get("client")
        if isinstance(client, (list, tuple)) and client:
            host = client[0]
            if isinstance(host, (str, bytes)):
                ip = _decode_header_value(host)

    user_id = get_user_id_from_scope(scope) or "unknown"
    return ClientInfo(ip, user_agent, user_id)
