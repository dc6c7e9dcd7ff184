"""
Claude RPG - Broadcast
======================

Live updates to connected dashboards.
"""

from .websocket_hub import (
    ClientConnection,
    ConnectionManager,
    WSMessage,
    WSMessageType,
    websocket_endpoint,
)

__all__ = [
    "ClientConnection",
    "ConnectionManager",
    "WSMessage",
    "WSMessageType",
    "websocket_endpoint",
]
