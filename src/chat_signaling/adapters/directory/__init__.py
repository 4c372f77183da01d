"""User directory adapters."""

from chat_signaling.adapters.directory.in_memory_user_directory import InMemoryUserDirectory

__all__ = ["InMemoryUserDirectory"]
