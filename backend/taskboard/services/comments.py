from typing import Any, Dict, List

from loguru import logger
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from taskboard.core.broadcast import EventSink
from taskboard.core.exceptions import NotFoundError
from taskboard.models.comment import Comment
from taskboard.models.task import Task
from taskboard.services import notifications
from taskboard.services.access import Scope, visible_to


class CommentService:
    def __init__(self, db: AsyncSession, sink: EventSink):
        self.db = db
        self.sink = sink

    async def _visible_task(self, task_id: int, user_id: int, scope: Scope) -> Task:
        result = await self.db.execute(
            select(Task).where(Task.id == task_id, visible_to(user_id, scope))
        )
        task = result.scalar_one_or_none()
        if task is None:
            raise NotFoundError("Task not found")
        return task

    async def _own_comment(self, task_id: int, comment_id: int, user_id: int) -> Comment:
        result = await self.db.execute(
            select(Comment).where(
                Comment.id == comment_id,
                Comment.task_id == task_id,
                Comment.user_id == user_id,
            )
        )
        comment = result.scalar_one_or_none()
        if comment is None:
            raise NotFoundError("Comment not found")
        return comment

    async def _reload(self, comment_id: int) -> Comment:
        result = await self.db.execute(
            select(Comment)
            .where(Comment.id == comment_id)
            .execution_options(populate_existing=True)
        )
        return result.scalar_one()

    async def list_for_task(self, task_id: int, user_id: int, scope: Scope) -> List[Comment]:
        await self._visible_task(task_id, user_id, scope)
        result = await self.db.execute(
            select(Comment)
            .where(Comment.task_id == task_id)
            .order_by(Comment.created_at.asc(), Comment.id.asc())
        )
        return list(result.scalars().all())

    async def get(self, task_id: int, comment_id: int, user_id: int, scope: Scope) -> Comment:
        await self._visible_task(task_id, user_id, scope)
        result = await self.db.execute(
            select(Comment).where(Comment.id == comment_id, Comment.task_id == task_id)
        )
        comment = result.scalar_one_or_none()
        if comment is None:
            raise NotFoundError("Comment not found")
        return comment

    async def create(self, task_id: int, content: str, user_id: int, scope: Scope) -> Comment:
        task = await self._visible_task(task_id, user_id, scope)
        comment = Comment(content=content, task_id=task.id, user_id=user_id)
        try:
            self.db.add(comment)
            await self.db.commit()
        except Exception:
            await self.db.rollback()
            raise

        comment = await self._reload(comment.id)
        logger.info(f"Comment {comment.id} added to task {task_id} by user {user_id}")

        # participants are loaded eagerly with the task
        result = await self.db.execute(
            select(Task).where(Task.id == task_id).execution_options(populate_existing=True)
        )
        task = result.scalar_one()
        await notifications.dispatch(
            self.sink, notifications.comment_created(comment, task, comment.user)
        )
        return comment

    async def update(self, task_id: int, comment_id: int, content: str | None, user_id: int) -> Comment:
        """Only the author may edit; anyone else gets the same not-found answer."""
        comment = await self._own_comment(task_id, comment_id, user_id)
        if content is not None:
            comment.content = content
            try:
                await self.db.commit()
            except Exception:
                await self.db.rollback()
                raise
        return await self._reload(comment.id)

    async def delete(self, task_id: int, comment_id: int, user_id: int) -> None:
        comment = await self._own_comment(task_id, comment_id, user_id)
        try:
            await self.db.delete(comment)
            await self.db.commit()
        except Exception:
            await self.db.rollback()
            raise
        logger.info(f"Comment {comment_id} deleted by user {user_id}")


def format_comment(comment: Comment) -> Dict[str, Any]:
    return {
        "id": comment.id,
        "content": comment.content,
        "task_id": comment.task_id,
        "user": comment.user.summary() if comment.user else None,
        "created_at": comment.created_at.isoformat(),
        "updated_at": comment.updated_at.isoformat(),
    }
