"""WebSocket host: seats players and serves hands from the holdem engine."""

from .server import HandServer, ServerConfig

__all__ = ["HandServer", "ServerConfig"]
