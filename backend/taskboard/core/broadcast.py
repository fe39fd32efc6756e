"""Real-time transport.

An ``EventSink`` publishes one event on one channel. Private channels are named
``user.{id}``; the websocket relay only lets a client attach to its own.
"""
import json
from typing import Any, Dict, Optional, Protocol

import redis.asyncio as redis
from loguru import logger

from taskboard.core.config import settings

CHANNEL_PREFIX = "user."


def channel_for(user_id: int) -> str:
    return f"{CHANNEL_PREFIX}{user_id}"


def user_id_from_channel(channel: str) -> Optional[int]:
    if not channel.startswith(CHANNEL_PREFIX):
        return None
    try:
        return int(channel[len(CHANNEL_PREFIX):])
    except ValueError:
        return None


class EventSink(Protocol):
    async def publish(self, channel: str, event: str, payload: Dict[str, Any]) -> None:
        ...


def encode_event(event: str, payload: Dict[str, Any]) -> str:
    return json.dumps({"event": event, "data": payload}, default=str)


class RedisEventSink:
    """Publishes on Redis pub/sub; subscribers that are not listening miss the event."""

    def __init__(self, client: redis.Redis):
        self.client = client

    async def publish(self, channel: str, event: str, payload: Dict[str, Any]) -> None:
        receivers = await self.client.publish(channel, encode_event(event, payload))
        logger.debug(f"Published {event} on {channel} ({receivers} subscriber(s))")


class LogEventSink:
    """Development sink: the event only goes to the log."""

    async def publish(self, channel: str, event: str, payload: Dict[str, Any]) -> None:
        logger.info(f"[broadcast] {channel} {event} {encode_event(event, payload)}")


def build_event_sink(client: Optional[redis.Redis] = None) -> EventSink:
    driver = settings.BROADCAST_DRIVER.lower()
    if driver == "log":
        return LogEventSink()
    if driver == "redis":
        if client is None:
            client = redis.from_url(settings.REDIS_URL, encoding="utf-8", decode_responses=True)
        return RedisEventSink(client)
    raise ValueError(f"Unknown BROADCAST_DRIVER: {settings.BROADCAST_DRIVER}")
