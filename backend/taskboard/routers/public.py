from typing import Optional

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from taskboard.core.database import get_db
from taskboard.core.principal import PublicPrincipal, principal_for
from taskboard.models.enums import TaskStatus, UserRole
from taskboard.routers.auth import (
    get_comment_service,
    get_task_service,
    issue_token,
    require_public,
)
from taskboard.schemas.auth import LoginRequest, RegisterRequest
from taskboard.schemas.comment import CommentCreate
from taskboard.services.access import Scope
from taskboard.services.comments import CommentService, format_comment
from taskboard.services.tasks import TaskService, format_task
from taskboard.services.users import authenticate, register_public_user

router = APIRouter(prefix="/public", tags=["public"])


def _session_payload(principal: PublicPrincipal) -> dict:
    return {"access_token": issue_token(principal), "token_type": "bearer", "user": principal.user.summary()}


@router.post("/register", status_code=status.HTTP_201_CREATED)
async def register(user_in: RegisterRequest, db: AsyncSession = Depends(get_db)):
    user = await register_public_user(db, user_in.name, user_in.email, user_in.password)
    return {"success": True, "data": _session_payload(principal_for(user)), "message": "Registration successful"}


@router.post("/login")
async def login(credentials: LoginRequest, db: AsyncSession = Depends(get_db)):
    principal = await authenticate(db, credentials.email, credentials.password, UserRole.USER)
    return {"success": True, "data": _session_payload(principal), "message": "Login successful"}


@router.post("/logout")
async def logout(principal: PublicPrincipal = Depends(require_public)):
    return {"success": True, "data": None, "message": "Logout successful"}


@router.get("/me")
async def me(principal: PublicPrincipal = Depends(require_public)):
    return {"success": True, "data": principal.user.summary()}


@router.get("/tasks")
async def list_tasks(
    status_filter: Optional[TaskStatus] = Query(None, alias="status"),
    page: int = Query(1, ge=1),
    per_page: Optional[int] = Query(None, ge=1),
    principal: PublicPrincipal = Depends(require_public),
    tasks: TaskService = Depends(get_task_service),
):
    """Tasks where the caller is executor or observer."""
    result = await tasks.list(principal.user.id, Scope.PUBLIC, status=status_filter, page=page, per_page=per_page)
    return {
        "success": True,
        "data": [format_task(task) for task in result.items],
        "meta": result.meta(),
    }


@router.get("/tasks/{task_id}")
async def show_task(
    task_id: int,
    principal: PublicPrincipal = Depends(require_public),
    tasks: TaskService = Depends(get_task_service),
):
    task = await tasks.get(task_id, principal.user.id, Scope.PUBLIC, with_comments=True)
    return {"success": True, "data": format_task(task, include_comments=True)}


@router.post("/tasks/{task_id}/comments", status_code=status.HTTP_201_CREATED)
async def create_comment(
    task_id: int,
    comment_in: CommentCreate,
    principal: PublicPrincipal = Depends(require_public),
    comments: CommentService = Depends(get_comment_service),
):
    comment = await comments.create(task_id, comment_in.content, principal.user.id, Scope.PUBLIC)
    return {"success": True, "data": format_comment(comment)}
