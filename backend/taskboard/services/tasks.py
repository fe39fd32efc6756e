import math
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

from loguru import logger
from sqlalchemy import delete, func, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from taskboard.core.broadcast import EventSink
from taskboard.core.config import settings
from taskboard.core.exceptions import NotFoundError, ValidationError
from taskboard.models.comment import Comment
from taskboard.models.enums import ParticipantRole, TaskStatus
from taskboard.models.task import Task, TaskParticipant
from taskboard.schemas.task import TaskCreate, TaskUpdate
from taskboard.services import notifications
from taskboard.services.access import Scope, visible_to
from taskboard.services.comments import format_comment
from taskboard.services.participants import (
    has_creator,
    normalize_assignments,
    role_holder,
    set_participants,
)


@dataclass
class Page:
    items: List[Task]
    total: int
    page: int
    per_page: int

    @property
    def last_page(self) -> int:
        return max(1, math.ceil(self.total / self.per_page))

    def meta(self) -> Dict[str, int]:
        return {
            "current_page": self.page,
            "last_page": self.last_page,
            "per_page": self.per_page,
            "total": self.total,
        }


def clamp_per_page(per_page: Optional[int]) -> int:
    if not per_page or per_page < 1:
        return settings.PAGE_SIZE
    return min(per_page, settings.MAX_PAGE_SIZE)


class TaskService:
    """Task aggregate: the task row, its participant edges and its comments."""

    def __init__(self, db: AsyncSession, sink: EventSink):
        self.db = db
        self.sink = sink

    async def _load(self, task_id: int, with_comments: bool = False) -> Task:
        options = [selectinload(Task.participants).joinedload(TaskParticipant.user)]
        if with_comments:
            options.append(selectinload(Task.comments).joinedload(Comment.user))
        result = await self.db.execute(
            select(Task)
            .options(*options)
            .where(Task.id == task_id)
            .execution_options(populate_existing=True)
        )
        return result.scalar_one()

    async def _find_visible(self, task_id: int, user_id: int, scope: Scope, for_update: bool = False) -> Task:
        query = select(Task).where(Task.id == task_id, visible_to(user_id, scope))
        if for_update:
            # Serialises concurrent participant rewrites of the same task
            query = query.with_for_update(of=Task).execution_options(populate_existing=True)
        task = (await self.db.execute(query)).scalar_one_or_none()
        if task is None:
            raise NotFoundError("Task not found")
        return task

    async def get(self, task_id: int, user_id: int, scope: Scope, with_comments: bool = False) -> Task:
        task = await self._find_visible(task_id, user_id, scope)
        return await self._load(task.id, with_comments=with_comments)

    async def list(
        self,
        user_id: int,
        scope: Scope,
        status: Optional[TaskStatus] = None,
        page: int = 1,
        per_page: Optional[int] = None,
    ) -> Page:
        per_page = clamp_per_page(per_page)
        page = max(page, 1)

        conditions = [visible_to(user_id, scope)]
        if status is not None:
            conditions.append(Task.status == status)

        total = await self.db.scalar(select(func.count()).select_from(Task).where(*conditions))
        result = await self.db.execute(
            select(Task)
            .options(selectinload(Task.participants).joinedload(TaskParticipant.user))
            .where(*conditions)
            .order_by(Task.created_at.desc(), Task.id.desc())
            .offset((page - 1) * per_page)
            .limit(per_page)
        )
        return Page(items=list(result.scalars().all()), total=total or 0, page=page, per_page=per_page)

    async def create(self, data: TaskCreate) -> Task:
        assignments = normalize_assignments(data.participants)
        if not assignments:
            raise ValidationError("participants must not be empty")
        if not has_creator(assignments):
            raise ValidationError("participants must include a user with the creator role")

        task = Task(
            title=data.title,
            description=data.description,
            status=data.status,
            due_date=data.due_date,
            participants=[],
        )
        try:
            self.db.add(task)
            await self.db.flush()
            await set_participants(self.db, task, assignments)
            await self.db.commit()
        except Exception:
            await self.db.rollback()
            raise

        task = await self._load(task.id)
        logger.info(f"Task {task.id} created with {len(task.participants)} participant(s)")
        await notifications.dispatch(self.sink, notifications.task_created(task))
        return task

    async def update(self, task_id: int, data: TaskUpdate, user_id: int) -> Task:
        """Partial update from the admin console.

        Only fields present in the request change. ``due_date: null`` clears the
        due date; null for the other scalar fields is ignored. A participant
        list without a creator keeps the current creator.
        """
        patch = data.model_dump(exclude_unset=True, exclude={"participants"})
        task = await self._find_visible(task_id, user_id, Scope.ADMIN, for_update=True)
        try:
            for field in ("title", "description", "status"):
                if patch.get(field) is not None:
                    setattr(task, field, patch[field])
            if "due_date" in patch:
                task.due_date = patch["due_date"]

            if "participants" in data.model_fields_set and data.participants is not None:
                await set_participants(self.db, task, normalize_assignments(data.participants))

            await self.db.commit()
        except Exception:
            await self.db.rollback()
            raise

        task = await self._load(task_id)
        logger.info(f"Task {task_id} updated by user {user_id}")
        await notifications.dispatch(self.sink, notifications.task_updated(task))
        return task

    async def delete(self, task_id: int, user_id: int) -> None:
        task = await self._find_visible(task_id, user_id, Scope.ADMIN, for_update=True)
        try:
            await self.db.execute(delete(Comment).where(Comment.task_id == task.id))
            # participant edges go with the task through the delete-orphan cascade
            await self.db.delete(task)
            await self.db.commit()
        except Exception:
            await self.db.rollback()
            raise
        logger.info(f"Task {task_id} deleted by user {user_id}")


def format_task(task: Task, include_comments: bool = False) -> Dict[str, Any]:
    creator = role_holder(task, ParticipantRole.CREATOR)
    executor = role_holder(task, ParticipantRole.EXECUTOR)
    result = {
        "id": task.id,
        "title": task.title,
        "description": task.description,
        "status": task.status.value,
        "due_date": task.due_date.isoformat() if task.due_date else None,
        "creator": creator.summary() if creator else None,
        "executor": executor.summary() if executor else None,
        "participants": [
            {**edge.user.summary(), "role": edge.role.value}
            for edge in task.participants
        ],
        "created_at": task.created_at.isoformat(),
        "updated_at": task.updated_at.isoformat(),
    }
    if include_comments:
        result["comments"] = [format_comment(comment) for comment in task.comments]
    return result
