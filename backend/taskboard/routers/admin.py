from typing import Optional

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from taskboard.core.database import get_db
from taskboard.core.principal import AdminPrincipal
from taskboard.models.enums import TaskStatus, UserRole
from taskboard.routers.auth import (
    get_comment_service,
    get_task_service,
    issue_token,
    require_admin,
)
from taskboard.schemas.auth import LoginRequest
from taskboard.schemas.comment import CommentCreate, CommentUpdate
from taskboard.schemas.task import TaskCreate, TaskUpdate
from taskboard.services.access import Scope
from taskboard.services.comments import CommentService, format_comment
from taskboard.services.tasks import TaskService, format_task
from taskboard.services.users import authenticate, search_users

router = APIRouter(prefix="/admin", tags=["admin"])


@router.post("/login")
async def login(credentials: LoginRequest, db: AsyncSession = Depends(get_db)):
    principal = await authenticate(db, credentials.email, credentials.password, UserRole.ADMIN)
    return {
        "success": True,
        "data": {"access_token": issue_token(principal), "token_type": "bearer", "user": principal.user.summary()},
        "message": "Login successful",
    }


@router.post("/logout")
async def logout(principal: AdminPrincipal = Depends(require_admin)):
    """Tokens are stateless; the console drops its copy."""
    return {"success": True, "data": None, "message": "Logout successful"}


@router.get("/me")
async def me(principal: AdminPrincipal = Depends(require_admin)):
    return {"success": True, "data": principal.user.summary()}


@router.get("/users")
async def find_users(
    search: str = Query("", max_length=255),
    principal: AdminPrincipal = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    """Participant picker for the task form; needs at least two characters."""
    users = await search_users(db, search)
    return {"success": True, "data": [user.summary() for user in users]}


@router.get("/tasks")
async def list_tasks(
    status_filter: Optional[TaskStatus] = Query(None, alias="status"),
    page: int = Query(1, ge=1),
    per_page: Optional[int] = Query(None, ge=1),
    principal: AdminPrincipal = Depends(require_admin),
    tasks: TaskService = Depends(get_task_service),
):
    result = await tasks.list(principal.user.id, Scope.ADMIN, status=status_filter, page=page, per_page=per_page)
    return {
        "success": True,
        "data": [format_task(task) for task in result.items],
        "meta": result.meta(),
    }


@router.post("/tasks", status_code=status.HTTP_201_CREATED)
async def create_task(
    task_in: TaskCreate,
    principal: AdminPrincipal = Depends(require_admin),
    tasks: TaskService = Depends(get_task_service),
):
    task = await tasks.create(task_in)
    return {"success": True, "data": format_task(task)}


@router.get("/tasks/{task_id}")
async def show_task(
    task_id: int,
    principal: AdminPrincipal = Depends(require_admin),
    tasks: TaskService = Depends(get_task_service),
):
    task = await tasks.get(task_id, principal.user.id, Scope.ADMIN)
    return {"success": True, "data": format_task(task)}


@router.put("/tasks/{task_id}")
async def update_task(
    task_id: int,
    task_in: TaskUpdate,
    principal: AdminPrincipal = Depends(require_admin),
    tasks: TaskService = Depends(get_task_service),
):
    task = await tasks.update(task_id, task_in, principal.user.id)
    return {"success": True, "data": format_task(task)}


@router.delete("/tasks/{task_id}")
async def delete_task(
    task_id: int,
    principal: AdminPrincipal = Depends(require_admin),
    tasks: TaskService = Depends(get_task_service),
):
    await tasks.delete(task_id, principal.user.id)
    return {"success": True, "message": "Task deleted"}


@router.get("/tasks/{task_id}/comments")
async def list_comments(
    task_id: int,
    principal: AdminPrincipal = Depends(require_admin),
    comments: CommentService = Depends(get_comment_service),
):
    items = await comments.list_for_task(task_id, principal.user.id, Scope.ADMIN)
    return {"success": True, "data": [format_comment(comment) for comment in items]}


@router.post("/tasks/{task_id}/comments", status_code=status.HTTP_201_CREATED)
async def create_comment(
    task_id: int,
    comment_in: CommentCreate,
    principal: AdminPrincipal = Depends(require_admin),
    comments: CommentService = Depends(get_comment_service),
):
    comment = await comments.create(task_id, comment_in.content, principal.user.id, Scope.ADMIN)
    return {"success": True, "data": format_comment(comment)}


@router.get("/tasks/{task_id}/comments/{comment_id}")
async def show_comment(
    task_id: int,
    comment_id: int,
    principal: AdminPrincipal = Depends(require_admin),
    comments: CommentService = Depends(get_comment_service),
):
    comment = await comments.get(task_id, comment_id, principal.user.id, Scope.ADMIN)
    return {"success": True, "data": format_comment(comment)}


@router.put("/tasks/{task_id}/comments/{comment_id}")
async def update_comment(
    task_id: int,
    comment_id: int,
    comment_in: CommentUpdate,
    principal: AdminPrincipal = Depends(require_admin),
    comments: CommentService = Depends(get_comment_service),
):
    comment = await comments.update(task_id, comment_id, comment_in.content, principal.user.id)
    return {"success": True, "data": format_comment(comment)}


@router.delete("/tasks/{task_id}/comments/{comment_id}")
async def delete_comment(
    task_id: int,
    comment_id: int,
    principal: AdminPrincipal = Depends(require_admin),
    comments: CommentService = Depends(get_comment_service),
):
    await comments.delete(task_id, comment_id, principal.user.id)
    return {"success": True, "message": "Comment deleted"}

