# tests/helpers.py

from __future__ import annotations

import asyncio

from taskboard.models.enums import ParticipantRole, TaskStatus
from taskboard.schemas.task import ParticipantIn, TaskCreate

PASSWORD = "correct-horse-battery"


class CapturingEventSink:
    """Records every publish instead of talking to Redis."""

    def __init__(self):
        self.published: list[tuple[str, str, dict]] = []

    async def publish(self, channel: str, event: str, payload: dict) -> None:
        self.published.append((channel, event, payload))

    def channels(self, event: str | None = None) -> set[str]:
        return {channel for channel, name, _ in self.published if event is None or name == event}

    def payloads(self, event: str) -> list[dict]:
        return [payload for _, name, payload in self.published if name == event]

    def clear(self) -> None:
        self.published.clear()


class FlakyEventSink(CapturingEventSink):
    """Fails on some channels and hangs on others."""

    def __init__(self, failing: set[str] = frozenset(), hanging: set[str] = frozenset()):
        super().__init__()
        self.failing = set(failing)
        self.hanging = set(hanging)

    async def publish(self, channel: str, event: str, payload: dict) -> None:
        if channel in self.failing:
            raise ConnectionError(f"gateway refused {channel}")
        if channel in self.hanging:
            await asyncio.sleep(60)
        await super().publish(channel, event, payload)


def participants_of(*pairs) -> list[ParticipantIn]:
    """participants_of((alice, "creator"), (bob, "executor"))"""
    return [ParticipantIn(user_id=user.id, role=ParticipantRole(role)) for user, role in pairs]


def task_in(*pairs, title: str = "Write report", status: TaskStatus = TaskStatus.PUBLISHED, due_date=None) -> TaskCreate:
    return TaskCreate(
        title=title,
        description=f"{title} description",
        status=status,
        due_date=due_date,
        participants=participants_of(*pairs),
    )


def channel(user) -> str:
    return f"user.{user.id}"
