"""
WebSocket manager for real-time RSVP updates
"""

import asyncio
import json
import logging
from typing import Callable, Dict, List, Set, Tuple
from fastapi import APIRouter, WebSocket, WebSocketDisconnect, Depends

from app.core.errors import RsvpError
from app.services.rsvp_service import RsvpSession
from app.services.session_registry import SessionRegistry, get_registry

logger = logging.getLogger(__name__)

class WebSocketManager:
    """Manages WebSocket connections for real-time updates"""

    def __init__(self):
        # group_id -> list of websockets
        self.active_connections: Dict[str, List[WebSocket]] = {}
        # group_id -> (observed session, unsubscribe function)
        self._subscriptions: Dict[str, Tuple[RsvpSession, Callable[[], None]]] = {}
        self._pending: Set[asyncio.Task] = set()

    async def connect(self, websocket: WebSocket, session: RsvpSession):
        """Accept WebSocket connection and add to the group room"""
        await websocket.accept()
        group_id = session.group.id

        if group_id not in self.active_connections:
            self.active_connections[group_id] = []

        self.active_connections[group_id].append(websocket)
        observed = self._subscriptions.get(group_id)
        if observed is None or observed[0] is not session:
            if observed:
                observed[1]()
            self._subscriptions[group_id] = (session, session.subscribe(self._on_change))
        logger.info(f"WebSocket connected to group {group_id}. Total connections: {len(self.active_connections[group_id])}")

    def disconnect(self, websocket: WebSocket, group_id: str):
        """Remove WebSocket connection from the group room"""
        if group_id in self.active_connections:
            try:
                self.active_connections[group_id].remove(websocket)
                logger.info(f"WebSocket disconnected from group {group_id}. Remaining connections: {len(self.active_connections[group_id])}")

                # Clean up empty rooms
                if not self.active_connections[group_id]:
                    del self.active_connections[group_id]
                    observed = self._subscriptions.pop(group_id, None)
                    if observed:
                        observed[1]()
            except ValueError:
                # WebSocket was not in the list
                pass

    def _on_change(self, session: RsvpSession):
        """Session observer; schedules the snapshot broadcast"""
        message = {"type": "rsvp_state", "data": session.snapshot().model_dump(mode="json")}
        task = asyncio.get_running_loop().create_task(self.broadcast_to_group(session.group.id, message))
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)

    async def send_personal_message(self, message: dict, websocket: WebSocket):
        """Send message to specific WebSocket"""
        try:
            await websocket.send_text(json.dumps(message))
        except Exception as e:
            logger.error(f"Error sending personal message: {e}")

    async def broadcast_to_group(self, group_id: str, message: dict):
        """Broadcast message to all WebSockets connected to a guest group"""
        if group_id not in self.active_connections:
            return

        # Create list copy to avoid modification during iteration
        connections = self.active_connections[group_id].copy()

        disconnected = []
        for websocket in connections:
            try:
                await websocket.send_text(json.dumps(message))
            except Exception as e:
                logger.error(f"Error broadcasting to websocket: {e}")
                disconnected.append(websocket)

        # Clean up disconnected websockets
        for websocket in disconnected:
            self.disconnect(websocket, group_id)

    def get_connection_count(self, group_id: str) -> int:
        """Get number of active connections for a group"""
        return len(self.active_connections.get(group_id, []))

# Global WebSocket manager instance
websocket_manager = WebSocketManager()

# Router for WebSocket endpoints
router = APIRouter()

@router.websocket("/rsvp/{group_id}")
async def websocket_endpoint(
    websocket: WebSocket,
    group_id: str,
    code: str = "",
    registry: SessionRegistry = Depends(get_registry)
):
    """WebSocket endpoint pushing the RSVP state of a guest group"""

    try:
        session = await registry.resume(group_id, code.strip())
    except RsvpError as e:
        logger.warning(f"Rejected WebSocket for group {group_id}: {e.code}")
        await websocket.close(code=4001, reason="Invalid invitation code")
        return

    await websocket_manager.connect(websocket, session)

    try:
        # Send current state
        welcome_message = {
            "type": "rsvp_state",
            "data": session.snapshot().model_dump(mode="json"),
            "connection_count": websocket_manager.get_connection_count(group_id)
        }
        await websocket_manager.send_personal_message(welcome_message, websocket)

        # Keep connection alive and handle incoming messages
        while True:
            data = await websocket.receive_text()
            try:
                client_message = json.loads(data)
            except json.JSONDecodeError:
                logger.warning(f"Invalid JSON received from WebSocket: {data}")
                continue

            # Handle heartbeat/ping
            if client_message.get("type") == "ping":
                pong_message = {
                    "type": "pong",
                    "timestamp": client_message.get("timestamp")
                }
                await websocket_manager.send_personal_message(pong_message, websocket)

    except WebSocketDisconnect:
        pass
    except Exception as e:
        logger.error(f"WebSocket error: {e}")
    finally:
        websocket_manager.disconnect(websocket, group_id)
