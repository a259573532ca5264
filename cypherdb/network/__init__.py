"""Network module for CypherDB."""

from .connection import Connection, ConnectionHandler
from .registry import ConnectionRegistry
from .tcp_server import CypherServer, ServerState

__all__ = [
    "Connection",
    "ConnectionHandler",
    "ConnectionRegistry",
    "CypherServer",
    "ServerState",
]
