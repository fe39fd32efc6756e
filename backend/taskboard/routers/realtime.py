import asyncio
import json
from typing import Set

import redis.asyncio as redis
from fastapi import APIRouter, Query, WebSocket, WebSocketDisconnect, status
from loguru import logger

from taskboard.core.broadcast import CHANNEL_PREFIX, user_id_from_channel
from taskboard.core.database import AsyncSessionLocal
from taskboard.core.exceptions import AuthError
from taskboard.core.websocket import ConnectionManager, manager
from taskboard.routers.auth import principal_from_token

router = APIRouter()


@router.websocket("/ws/user/{user_id}")
async def user_channel(websocket: WebSocket, user_id: int, token: str = Query("")):
    """Private channel user.{user_id}; only its owner may attach."""
    async with AsyncSessionLocal() as session:
        try:
            principal = await principal_from_token(session, token)
        except AuthError:
            await websocket.close(code=status.WS_1008_POLICY_VIOLATION)
            return

    if principal.user.id != user_id:
        logger.warning(f"User {principal.user.id} tried to attach to channel of user {user_id}")
        await websocket.close(code=status.WS_1008_POLICY_VIOLATION)
        return

    await manager.connect(websocket, user_id)
    logger.info(f"User {user_id} connected to real-time channel")
    try:
        while True:
            # Inbound frames are only keep-alives
            await websocket.receive_text()
    except WebSocketDisconnect:
        logger.info(f"User {user_id} disconnected from real-time channel")
    finally:
        manager.disconnect(websocket, user_id)


async def _deliver(connections: ConnectionManager, user_id: int, event: str, data: str) -> None:
    delivered = await connections.send_to_user(user_id, data)
    logger.debug(f"Relayed {event} to {delivered} socket(s) of user {user_id}")


async def relay_user_channels(client: redis.Redis, connections: ConnectionManager = manager):
    """Forward every ``user.*`` message from Redis to that user's open sockets.

    Each message is handed off to its own send so a slow socket only holds up
    its own user.
    """
    pubsub = client.pubsub()
    await pubsub.psubscribe(f"{CHANNEL_PREFIX}*")
    pending: Set[asyncio.Task] = set()
    try:
        async for message in pubsub.listen():
            if message["type"] != "pmessage":
                continue
            user_id = user_id_from_channel(message["channel"])
            if user_id is None or not connections.is_connected(user_id):
                continue
            data = message["data"]
            try:
                event = json.loads(data).get("event")
            except (AttributeError, TypeError, ValueError):
                logger.warning(f"Skipping malformed message on {message['channel']}")
                continue
            send = asyncio.create_task(_deliver(connections, user_id, event, data))
            pending.add(send)
            send.add_done_callback(pending.discard)
        if pending:
            await asyncio.gather(*pending)
    finally:
        for send in pending:
            send.cancel()
        await pubsub.aclose()


async def supervise_relay(
    client: redis.Redis,
    connections: ConnectionManager = manager,
    retry_delay: float = 5.0,
):
    """Keep the relay subscribed; a dropped or unreachable Redis is retried."""
    while True:
        try:
            await relay_user_channels(client, connections)
            logger.warning("Redis relay stream ended, resubscribing")
        except Exception as e:
            logger.opt(exception=e).error(f"Redis relay failed, retrying in {retry_delay}s")
        await asyncio.sleep(retry_delay)
