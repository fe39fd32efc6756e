"""Task participant edges.

A task's participants are (task, user, role) edges keyed by (task, user).
Every task keeps exactly one creator; creator and executor are held by at
most one user each, observers are unbounded.
"""
from typing import Dict, Iterable, List, Optional

from loguru import logger
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from taskboard.core.exceptions import IntegrityError, ValidationError
from taskboard.models.enums import ParticipantRole
from taskboard.models.task import Task, TaskParticipant
from taskboard.models.user import User
from taskboard.schemas.task import ParticipantIn


def normalize_assignments(entries: Iterable[ParticipantIn]) -> Dict[int, ParticipantRole]:
    """Collapse the request list into user_id -> role; a repeated user keeps its last role."""
    assignments: Dict[int, ParticipantRole] = {}
    for entry in entries:
        assignments[entry.user_id] = ParticipantRole(entry.role)
    return assignments


def has_creator(assignments: Dict[int, ParticipantRole]) -> bool:
    return ParticipantRole.CREATOR in assignments.values()


def _check_single_holders(assignments: Dict[int, ParticipantRole]) -> None:
    for role in ParticipantRole.single_holder_roles():
        holders = [user_id for user_id, assigned in assignments.items() if assigned is role]
        if len(holders) > 1:
            raise ValidationError(f"Only one participant may have the {role.value} role")


async def _check_users_exist(db: AsyncSession, user_ids: Iterable[int]) -> None:
    wanted = set(user_ids)
    if not wanted:
        return
    result = await db.execute(select(User.id).where(User.id.in_(wanted)))
    missing = wanted - set(result.scalars().all())
    if missing:
        raise ValidationError(f"Unknown participant user id(s): {', '.join(map(str, sorted(missing)))}")


async def get_by_role(db: AsyncSession, task_id: int, role: ParticipantRole) -> List[User]:
    result = await db.execute(
        select(User)
        .join(TaskParticipant, TaskParticipant.user_id == User.id)
        .where(TaskParticipant.task_id == task_id, TaskParticipant.role == role)
        .order_by(User.id)
    )
    return list(result.scalars().all())


def _single(task_id: int, role: ParticipantRole, users: List[User]) -> Optional[User]:
    if len(users) > 1:
        logger.error(f"Task {task_id} has {len(users)} participants with role {role.value}")
        raise IntegrityError(f"Task {task_id} has more than one {role.value}")
    return users[0] if users else None


async def get_single_by_role(db: AsyncSession, task_id: int, role: ParticipantRole) -> Optional[User]:
    """Creator/executor lookup. Several holders of the role is a broken invariant, not a tie."""
    if role not in ParticipantRole.single_holder_roles():
        raise ValueError(f"{role.value} is not a single-holder role")
    return _single(task_id, role, await get_by_role(db, task_id, role))


def role_holder(task: Task, role: ParticipantRole) -> Optional[User]:
    """Same as get_single_by_role, over the already loaded participants of task."""
    return _single(task.id, role, [edge.user for edge in task.participants if edge.role is role])


async def set_participants(
    db: AsyncSession,
    task: Task,
    assignments: Dict[int, ParticipantRole],
) -> None:
    """Replace the task's edge set with assignments.

    Edges missing from assignments are removed, the rest are upserted. When
    assignments name no creator, the task's current creator is kept. The
    caller owns the transaction; nothing is committed here.
    """
    assignments = dict(assignments)
    _check_single_holders(assignments)

    if not has_creator(assignments):
        creator = None
        if task.id is not None:
            creator = await get_single_by_role(db, task.id, ParticipantRole.CREATOR)
        if creator is None:
            logger.error(f"Task {task.id} has no creator to carry over into the new participant set")
            raise IntegrityError(f"Task {task.id} has no creator")
        assignments[creator.id] = ParticipantRole.CREATOR

    await _check_users_exist(db, assignments.keys())

    current = {edge.user_id: edge for edge in task.participants}
    for user_id, edge in current.items():
        if user_id not in assignments:
            task.participants.remove(edge)

    for user_id, role in assignments.items():
        edge = current.get(user_id)
        if edge is None:
            task.participants.append(TaskParticipant(user_id=user_id, role=role))
        elif edge.role is not role:
            edge.role = role

    await db.flush()
