"""Task and comment notifications.

Each builder turns aggregate state into a ``Notification``: the event name, the
payload and the audience. ``dispatch`` then sends one message per audience
member on that member's private channel. Delivery is at-most-once; a recipient
that cannot be reached is logged and skipped.
"""
import asyncio
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Any, Dict, FrozenSet, Optional

from loguru import logger

from taskboard.core.broadcast import EventSink, channel_for
from taskboard.core.config import settings
from taskboard.models.comment import Comment
from taskboard.models.task import Task
from taskboard.models.user import User


class EventType(str, Enum):
    TASK_CREATED = "task.created"
    TASK_UPDATED = "task.updated"
    COMMENT_CREATED = "comment.created"


@dataclass(frozen=True)
class Notification:
    event: EventType
    message: str
    payload: Dict[str, Any]
    audience: FrozenSet[int]


@dataclass(frozen=True)
class DispatchResult:
    delivered: FrozenSet[int]
    failed: FrozenSet[int]


def _iso(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value is not None else None


def participant_ids(task: Task) -> FrozenSet[int]:
    return frozenset(edge.user_id for edge in task.participants)


def _task_payload(task: Task) -> Dict[str, Any]:
    return {
        "id": task.id,
        "title": task.title,
        "status": task.status.value,
        "description": task.description,
        "due_date": _iso(task.due_date),
        "created_at": _iso(task.created_at),
    }


def _task_notification(event: EventType, message: str, task: Task) -> Notification:
    return Notification(
        event=event,
        message=message,
        payload={"task": _task_payload(task), "message": message, "type": event.value},
        audience=participant_ids(task),
    )


def task_created(task: Task) -> Notification:
    return _task_notification(EventType.TASK_CREATED, f"New task created: {task.title}", task)


def task_updated(task: Task) -> Notification:
    # task must already carry the post-update participants and fields
    return _task_notification(EventType.TASK_UPDATED, f"Task updated: {task.title}", task)


def comment_created(comment: Comment, task: Task, author: User) -> Notification:
    message = f"{author.name} commented on task: {task.title}"
    return Notification(
        event=EventType.COMMENT_CREATED,
        message=message,
        payload={
            "comment": {
                "id": comment.id,
                "content": comment.content,
                "task_id": comment.task_id,
                "user": author.summary(),
                "created_at": _iso(comment.created_at),
            },
            "task": {"id": task.id, "title": task.title},
            "message": message,
            "type": EventType.COMMENT_CREATED.value,
        },
        audience=participant_ids(task) - {comment.user_id},
    )


async def dispatch(
    sink: EventSink,
    notification: Notification,
    timeout: Optional[float] = None,
) -> DispatchResult:
    """Fan the notification out to its audience concurrently.

    Each send is bounded by timeout. Failures never propagate: the write that
    produced the event has already been committed.
    """
    if timeout is None:
        timeout = settings.BROADCAST_TIMEOUT

    async def send(user_id: int) -> bool:
        channel = channel_for(user_id)
        try:
            await asyncio.wait_for(
                sink.publish(channel, notification.event.value, notification.payload),
                timeout=timeout,
            )
        except asyncio.TimeoutError:
            logger.warning(f"Timed out sending {notification.event.value} on {channel} after {timeout}s")
            return False
        except Exception as e:
            logger.opt(exception=e).warning(f"Failed to send {notification.event.value} on {channel}")
            return False
        return True

    recipients = sorted(notification.audience)
    outcomes = await asyncio.gather(*(send(user_id) for user_id in recipients))

    delivered = frozenset(u for u, ok in zip(recipients, outcomes) if ok)
    failed = frozenset(u for u, ok in zip(recipients, outcomes) if not ok)
    logger.info(
        f"{notification.event.value}: delivered to {len(delivered)}/{len(recipients)} recipient(s)"
    )
    return DispatchResult(delivered=delivered, failed=failed)
