"""Visibility predicates for the two surfaces.

Both predicates are SQL clauses so they are applied inside the query (and the
pagination count), never by filtering rows after the fetch.
"""
from enum import Enum
from typing import FrozenSet, assert_never

from sqlalchemy import exists, and_
from sqlalchemy.sql.elements import ColumnElement

from taskboard.models.enums import ParticipantRole
from taskboard.models.task import Task, TaskParticipant


class Scope(str, Enum):
    ADMIN = "admin"
    PUBLIC = "public"


def visible_roles(scope: Scope) -> FrozenSet[ParticipantRole]:
    match scope:
        case Scope.ADMIN:
            return frozenset(ParticipantRole)
        case Scope.PUBLIC:
            # A creator sees the task publicly only if also executor or observer
            return frozenset({ParticipantRole.EXECUTOR, ParticipantRole.OBSERVER})
        case _:
            assert_never(scope)


def visible_to(user_id: int, scope: Scope) -> ColumnElement[bool]:
    """WHERE clause selecting the tasks user_id may read under scope."""
    return exists().where(
        and_(
            TaskParticipant.task_id == Task.id,
            TaskParticipant.user_id == user_id,
            TaskParticipant.role.in_(list(visible_roles(scope))),
        )
    )
