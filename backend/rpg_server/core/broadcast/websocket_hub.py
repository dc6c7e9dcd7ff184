"""
Claude RPG - WebSocket Hub
==========================

Real-time event streaming via WebSocket.
Browser clients connect to receive battle log events and live session
updates. The hub only reads tracking state; it never mutates it.
"""

import asyncio
import json
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, Optional
from uuid import uuid4

import structlog
from fastapi import WebSocket, WebSocketDisconnect
from starlette.websockets import WebSocketState

from rpg_server.core.tracking import RpgEvent, Session, TrackingService

logger = structlog.get_logger()


# ==========================================================================
# WebSocket Message Types
# ==========================================================================

class WSMessageType(str, Enum):
    """WebSocket message types"""
    # Client -> Server
    PING = "ping"

    # Server -> Client
    EVENT = "rpg:event"
    SESSION_UPDATE = "rpg:session_update"
    PONG = "pong"
    ERROR = "error"
    CONNECTED = "connected"


@dataclass
class WSMessage:
    """WebSocket message structure"""
    type: WSMessageType
    payload: Any
    timestamp: str = field(default_factory=lambda: datetime.now(timezone.utc).isoformat())
    message_id: str = field(default_factory=lambda: str(uuid4()))

    def to_json(self) -> str:
        return json.dumps({
            "type": self.type.value,
            "payload": self.payload,
            "timestamp": self.timestamp,
            "message_id": self.message_id,
        })

    @classmethod
    def from_json(cls, data: str) -> 'WSMessage':
        parsed = json.loads(data)
        return cls(
            type=WSMessageType(parsed["type"]),
            payload=parsed.get("payload"),
            timestamp=parsed.get("timestamp", datetime.now(timezone.utc).isoformat()),
            message_id=parsed.get("message_id", str(uuid4())),
        )


# ==========================================================================
# Connection Manager
# ==========================================================================

@dataclass
class ClientConnection:
    """Represents a connected WebSocket client"""
    id: str
    websocket: WebSocket
    connected_at: str = field(default_factory=lambda: datetime.now(timezone.utc).isoformat())
    is_active: bool = True


class ConnectionManager:
    """
    Manages WebSocket connections and fan-out of tracking updates.
    One instance per application, held on app.state.
    """

    def __init__(self):
        self.connections: Dict[str, ClientConnection] = {}
        self._lock = asyncio.Lock()

    @property
    def client_count(self) -> int:
        return len(self.connections)

    async def connect(self, websocket: WebSocket) -> str:
        """Accept new WebSocket connection"""
        await websocket.accept()

        client_id = str(uuid4())
        async with self._lock:
            self.connections[client_id] = ClientConnection(id=client_id, websocket=websocket)

        await self.send_to_client(client_id, WSMessage(
            type=WSMessageType.CONNECTED,
            payload={"client_id": client_id},
        ))

        logger.info("ws_client_connected", client_id=client_id, total=len(self.connections))
        return client_id

    async def disconnect(self, client_id: str):
        """Handle client disconnection"""
        async with self._lock:
            connection = self.connections.pop(client_id, None)
            if connection:
                connection.is_active = False

        logger.info("ws_client_disconnected", client_id=client_id, total=len(self.connections))

    async def handle_message(self, client_id: str, message: WSMessage):
        """Handle incoming message from client"""
        if message.type == WSMessageType.PING:
            await self.send_to_client(client_id, WSMessage(
                type=WSMessageType.PONG,
                payload={"received": message.timestamp},
            ))

    async def send_to_client(self, client_id: str, message: WSMessage):
        """Send message to specific client"""
        connection = self.connections.get(client_id)
        if not connection or not connection.is_active:
            return

        try:
            if connection.websocket.client_state == WebSocketState.CONNECTED:
                await connection.websocket.send_text(message.to_json())
        except Exception as e:
            logger.error("ws_send_failed", client_id=client_id, error=str(e))
            connection.is_active = False

    async def broadcast(self, message: WSMessage):
        """Send message to every active client"""
        for client_id, connection in list(self.connections.items()):
            if connection.is_active:
                await self.send_to_client(client_id, message)

    async def broadcast_event(self, event: RpgEvent):
        """Battle log entry"""
        await self.broadcast(WSMessage(type=WSMessageType.EVENT, payload=event.to_dict()))

    async def broadcast_session(self, session: Optional[Session]):
        """Live view of the session the dashboard is following (null when idle)"""
        payload = session.model_dump(mode="json", by_alias=True) if session else None
        await self.broadcast(WSMessage(type=WSMessageType.SESSION_UPDATE, payload=payload))


# ==========================================================================
# FastAPI WebSocket Endpoint
# ==========================================================================

async def websocket_endpoint(
    websocket: WebSocket,
    manager: ConnectionManager,
    tracking: TrackingService,
):
    """
    WebSocket endpoint handler.

    New clients get the current active session right after the
    connection confirmation.
    """
    client_id = await manager.connect(websocket)

    active = tracking.get_active_session()
    if active is not None:
        await manager.send_to_client(client_id, WSMessage(
            type=WSMessageType.SESSION_UPDATE,
            payload=active.model_dump(mode="json", by_alias=True),
        ))

    try:
        while True:
            data = await websocket.receive_text()
            try:
                message = WSMessage.from_json(data)
            except (json.JSONDecodeError, KeyError, ValueError, TypeError):
                await manager.send_to_client(client_id, WSMessage(
                    type=WSMessageType.ERROR,
                    payload={"error": "Invalid message"},
                ))
                continue
            await manager.handle_message(client_id, message)
    except WebSocketDisconnect:
        await manager.disconnect(client_id)
    except Exception as e:
        logger.error("ws_error", client_id=client_id, error=str(e))
        await manager.disconnect(client_id)
