import asyncio
from typing import Dict, List, Optional
from fastapi import WebSocket
from loguru import logger

from taskboard.core.config import settings

class ConnectionManager:
    """Open websockets per user; a user may hold several (one per browser tab).

    Sends to one user are serialised so that user's events arrive in order;
    sends to different users never wait on each other. A socket that does not
    take a frame within send_timeout is dropped.
    """

    def __init__(self, send_timeout: Optional[float] = None):
        self.user_connections: Dict[int, List[WebSocket]] = {}
        self.send_timeout = send_timeout
        self._send_locks: Dict[int, asyncio.Lock] = {}

    async def connect(self, websocket: WebSocket, user_id: int):
        await websocket.accept()
        self.user_connections.setdefault(user_id, []).append(websocket)

    def disconnect(self, websocket: WebSocket, user_id: int):
        connections = self.user_connections.get(user_id, [])
        if websocket in connections:
            connections.remove(websocket)
        if not connections:
            self.user_connections.pop(user_id, None)

    def is_connected(self, user_id: int) -> bool:
        return bool(self.user_connections.get(user_id))

    async def _send(self, websocket: WebSocket, user_id: int, message: str, timeout: float) -> bool:
        try:
            await asyncio.wait_for(websocket.send_text(message), timeout=timeout)
        except asyncio.TimeoutError:
            logger.warning(f"Dropping websocket of user {user_id}: no ack within {timeout}s")
            self.disconnect(websocket, user_id)
            return False
        except Exception as e:
            logger.warning(f"Dropping websocket of user {user_id}: {e}")
            self.disconnect(websocket, user_id)
            return False
        return True

    async def send_to_user(self, user_id: int, message: str) -> int:
        """Send to every socket of user_id; returns how many received it."""
        timeout = self.send_timeout if self.send_timeout is not None else settings.BROADCAST_TIMEOUT
        lock = self._send_locks.setdefault(user_id, asyncio.Lock())
        async with lock:
            connections = list(self.user_connections.get(user_id, []))
            outcomes = await asyncio.gather(
                *(self._send(connection, user_id, message, timeout) for connection in connections)
            )
        if not self.is_connected(user_id) and not lock.locked():
            self._send_locks.pop(user_id, None)
        return sum(outcomes)

manager = ConnectionManager()
