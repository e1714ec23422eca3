"""
WebSocket manager for streaming layout frames to renderers
"""
import asyncio
import logging
from typing import Dict, Optional
from datetime import datetime

from fastapi import WebSocket, WebSocketDisconnect

from ..core.frames import LayoutFrame

logger = logging.getLogger(__name__)

FRAME_STREAM = "frames"


class WebSocketManager:
    """
    Manages WebSocket connections of renderers subscribed to the frame stream
    """

    def __init__(self):
        # Active connections by connection ID
        self.active_connections: Dict[str, WebSocket] = {}
        # Connection metadata
        self.connection_metadata: Dict[str, Dict] = {}

    async def connect(self, websocket: WebSocket, connection_id: str,
                      connection_type: str = FRAME_STREAM) -> bool:
        """
        Accept a new WebSocket connection

        Args:
            websocket: The WebSocket connection
            connection_id: Unique identifier for this connection
            connection_type: Stream the connection subscribes to

        Returns:
            True if connection was successful
        """
        try:
            await websocket.accept()
            now = datetime.now().timestamp()
            self.active_connections[connection_id] = websocket
            self.connection_metadata[connection_id] = {
                "type": connection_type,
                "connected_at": now,
                "last_activity": now,
                "frames_sent": 0,
            }
            logger.info(f"WebSocket connection established: {connection_id} (type: {connection_type})")
            return True
        except Exception as e:
            logger.error(f"Failed to establish WebSocket connection {connection_id}: {e}")
            return False

    def disconnect(self, connection_id: str):
        """
        Remove a WebSocket connection

        Args:
            connection_id: ID of connection to remove
        """
        if connection_id in self.active_connections:
            del self.active_connections[connection_id]
            del self.connection_metadata[connection_id]
            logger.info(f"WebSocket connection disconnected: {connection_id}")

    async def send_to_connection(self, connection_id: str, message: Dict) -> bool:
        """
        Send a message to a specific connection

        Args:
            connection_id: Target connection ID
            message: Message data to send
        """
        if connection_id not in self.active_connections:
            logger.warning(f"Attempted to send to non-existent connection: {connection_id}")
            return False

        try:
            websocket = self.active_connections[connection_id]
            await websocket.send_json(message)

            metadata = self.connection_metadata.get(connection_id)
            if metadata is not None:
                metadata["last_activity"] = datetime.now().timestamp()
                if message.get("type") == "frame":
                    metadata["frames_sent"] += 1

            return True
        except WebSocketDisconnect:
            logger.info(f"WebSocket disconnected during send: {connection_id}")
            self.disconnect(connection_id)
            return False
        except Exception as e:
            logger.error(f"Failed to send message to {connection_id}: {e}")
            self.disconnect(connection_id)
            return False

    def connection_count(self, connection_type: Optional[str] = None) -> int:
        if connection_type is None:
            return len(self.active_connections)
        return sum(1 for metadata in self.connection_metadata.values()
                   if metadata.get("type") == connection_type)

    async def broadcast_to_type(self, connection_type: str, message: Dict) -> int:
        """
        Broadcast a message to all connections of a specific type

        Args:
            connection_type: Type of connections to target
            message: Message data to broadcast

        Returns:
            Number of connections that received the message
        """
        target_connections = [
            conn_id for conn_id, metadata in self.connection_metadata.items()
            if metadata.get("type") == connection_type
        ]

        if not target_connections:
            return 0

        results = await asyncio.gather(
            *(self.send_to_connection(conn_id, message) for conn_id in target_connections),
            return_exceptions=True
        )

        successful = sum(1 for result in results if result is True)
        logger.debug(f"Broadcast to {successful}/{len(target_connections)} connections of type '{connection_type}'")
        return successful

    async def broadcast_frame(self, frame: LayoutFrame) -> int:
        """
        Broadcast a layout frame to every frame subscriber

        Args:
            frame: Frame produced by the controller tick
        """
        message = {
            "type": "frame",
            "data": frame.to_dict(),
        }
        return await self.broadcast_to_type(FRAME_STREAM, message)

    async def broadcast_state_change(self, change_type: str, data: Optional[Dict] = None) -> int:
        """
        Broadcast a controller state change (strategy switch, settings, items)

        Args:
            change_type: Kind of change ('strategy', 'settings', 'items', 'overlay')
            data: Optional payload describing the new state
        """
        message = {
            "type": "state_change",
            "data": {
                "change_type": change_type,
                "state": data,
                "timestamp": datetime.now().timestamp()
            }
        }
        return await self.broadcast_to_type(FRAME_STREAM, message)

    def get_connection_stats(self) -> Dict:
        """
        Get statistics about active connections

        Returns:
            Dictionary with connection statistics
        """
        connections_by_type = {}
        for metadata in self.connection_metadata.values():
            conn_type = metadata.get("type", "unknown")
            connections_by_type[conn_type] = connections_by_type.get(conn_type, 0) + 1

        return {
            "total_connections": len(self.active_connections),
            "connections_by_type": connections_by_type,
            "frames_sent": sum(m.get("frames_sent", 0) for m in self.connection_metadata.values()),
            "active_connection_ids": list(self.active_connections.keys())
        }

    async def cleanup_stale_connections(self, max_idle_seconds: int = 3600):
        """
        Remove connections that have been idle for too long

        Args:
            max_idle_seconds: Maximum idle time before cleanup
        """
        current_time = datetime.now().timestamp()
        stale_connections = [
            conn_id for conn_id, metadata in self.connection_metadata.items()
            if current_time - metadata.get("last_activity", 0) > max_idle_seconds
        ]

        for conn_id in stale_connections:
            logger.info(f"Cleaning up stale WebSocket connection: {conn_id}")
            self.disconnect(conn_id)

        if stale_connections:
            logger.info(f"Cleaned up {len(stale_connections)} stale WebSocket connections")


# Global WebSocket manager instance
websocket_manager = WebSocketManager()
