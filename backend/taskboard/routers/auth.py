"""Authentication dependencies shared by both surfaces."""
from typing import Optional

from fastapi import Depends, Request
from fastapi.security import OAuth2PasswordBearer
from sqlalchemy.ext.asyncio import AsyncSession

from taskboard.core.broadcast import EventSink
from taskboard.core.database import get_db
from taskboard.core.exceptions import AuthError, ForbiddenError
from taskboard.core.principal import AdminPrincipal, Principal, PublicPrincipal, principal_for
from taskboard.core.security import create_access_token, decode_access_token
from taskboard.services.comments import CommentService
from taskboard.services.tasks import TaskService
from taskboard.services.users import find_user_by_id

oauth2_scheme = OAuth2PasswordBearer(tokenUrl="public/login", auto_error=False)


def issue_token(principal: Principal) -> str:
    return create_access_token({"sub": str(principal.user.id), "realm": principal.realm.value})


async def principal_from_token(db: AsyncSession, token: Optional[str]) -> Principal:
    if not token:
        raise AuthError()

    payload = decode_access_token(token)
    try:
        user_id = int(payload["sub"])
    except (TypeError, ValueError) as e:
        raise AuthError("Could not validate credentials") from e

    user = await find_user_by_id(db, user_id)
    # A role change after issuing invalidates the token's realm
    if user is None or user.role.value != payload["realm"]:
        raise AuthError("Could not validate credentials")
    return principal_for(user)


async def get_current_principal(
    token: Optional[str] = Depends(oauth2_scheme),
    db: AsyncSession = Depends(get_db),
) -> Principal:
    return await principal_from_token(db, token)


async def require_admin(principal: Principal = Depends(get_current_principal)) -> AdminPrincipal:
    if not isinstance(principal, AdminPrincipal):
        raise ForbiddenError()
    return principal


async def require_public(principal: Principal = Depends(get_current_principal)) -> PublicPrincipal:
    if not isinstance(principal, PublicPrincipal):
        raise ForbiddenError()
    return principal


def get_event_sink(request: Request) -> EventSink:
    return request.app.state.event_sink


def get_task_service(
    db: AsyncSession = Depends(get_db),
    sink: EventSink = Depends(get_event_sink),
) -> TaskService:
    return TaskService(db, sink)


def get_comment_service(
    db: AsyncSession = Depends(get_db),
    sink: EventSink = Depends(get_event_sink),
) -> CommentService:
    return CommentService(db, sink)
