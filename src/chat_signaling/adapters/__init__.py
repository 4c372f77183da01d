"""Adapters layer - transports, configuration and directory."""

from chat_signaling.adapters.config import AppConfig
from chat_signaling.adapters.directory import InMemoryUserDirectory

__all__ = [
    "AppConfig",
    "InMemoryUserDirectory",
]
