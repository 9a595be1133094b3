"""
WebSocket connection manager for real-time job updates.
"""

import asyncio
import json
import logging
from dataclasses import dataclass, field

from fastapi import WebSocket, WebSocketDisconnect

from procqueue.types.events import JobEvent, WebSocketMessage

logger = logging.getLogger(__name__)


@dataclass(eq=False)
class ConnectionInfo:
    """Information about a WebSocket connection."""

    websocket: WebSocket
    subscribed_jobs: set[str] = field(default_factory=set)

    def wants(self, event: JobEvent) -> bool:
        """Connections without subscriptions receive every event."""
        if not self.subscribed_jobs or event.job_id is None:
            return True
        return event.job_id in self.subscribed_jobs


class WebSocketManager:
    """
    Manager for WebSocket connections.

    Handles connection lifecycle and message broadcasting
    for real-time job status updates.
    """

    def __init__(self):
        """Initialize the WebSocket manager."""
        self._connections: list[ConnectionInfo] = []
        self._lock = asyncio.Lock()

    async def connect(self, websocket: WebSocket) -> ConnectionInfo:
        """
        Accept a new WebSocket connection.

        Args:
            websocket: The WebSocket connection.

        Returns:
            ConnectionInfo for the new connection.
        """
        await websocket.accept()

        connection = ConnectionInfo(websocket=websocket)

        async with self._lock:
            self._connections.append(connection)

        logger.info(
            "WebSocket connected",
            extra={"connections": len(self._connections)}
        )

        return connection

    async def disconnect(self, connection: ConnectionInfo) -> None:
        """
        Handle WebSocket disconnection.

        Args:
            connection: The connection to remove.
        """
        async with self._lock:
            if connection in self._connections:
                self._connections.remove(connection)

        logger.info(
            "WebSocket disconnected",
            extra={"connections": len(self._connections)}
        )

    def subscribe_to_job(self, connection: ConnectionInfo, job_id: str) -> None:
        connection.subscribed_jobs.add(job_id)

    def unsubscribe_from_job(self, connection: ConnectionInfo, job_id: str) -> None:
        connection.subscribed_jobs.discard(job_id)

    async def broadcast_job_event(self, event: JobEvent) -> None:
        """
        Broadcast a job event to interested connections.

        Args:
            event: The job event to broadcast.
        """
        async with self._lock:
            connections = [conn for conn in self._connections if conn.wants(event)]

        if not connections:
            return

        message_json = WebSocketMessage.from_event(event).model_dump_json()

        # Send to all connections, handling failures
        disconnected = []
        for connection in connections:
            try:
                await connection.websocket.send_text(message_json)
            except Exception as e:
                logger.warning(f"Failed to send WebSocket message: {e}")
                disconnected.append(connection)

        for connection in disconnected:
            await self.disconnect(connection)

    async def publish(self, event: JobEvent) -> None:
        """Notification sink entry point."""
        await self.broadcast_job_event(event)

    def get_connection_count(self) -> int:
        return len(self._connections)


async def websocket_handler(websocket: WebSocket, manager: WebSocketManager) -> None:
    """
    Handle a WebSocket connection for job updates.

    Clients may send ``{"action": "subscribe", "job_id": ...}``,
    ``{"action": "unsubscribe", "job_id": ...}`` or ``{"action": "ping"}``.

    Args:
        websocket: The WebSocket connection.
        manager: The connection manager events are broadcast through.
    """
    connection = await manager.connect(websocket)

    try:
        while True:
            data = await websocket.receive_text()

            try:
                message = json.loads(data)
                action = message.get("action")

                if action == "subscribe":
                    job_id = str(message["job_id"])
                    manager.subscribe_to_job(connection, job_id)
                    await websocket.send_json({"type": "subscribed", "job_id": job_id})

                elif action == "unsubscribe":
                    job_id = str(message["job_id"])
                    manager.unsubscribe_from_job(connection, job_id)
                    await websocket.send_json({"type": "unsubscribed", "job_id": job_id})

                elif action == "ping":
                    await websocket.send_json({"type": "pong"})

                else:
                    await websocket.send_json({
                        "type": "error",
                        "message": f"Unknown action: {action}",
                    })

            except (json.JSONDecodeError, AttributeError, KeyError) as e:
                await websocket.send_json({
                    "type": "error",
                    "message": f"Invalid message: {e}",
                })

    except WebSocketDisconnect:
        await manager.disconnect(connection)
