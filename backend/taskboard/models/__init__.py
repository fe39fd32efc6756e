from taskboard.models.enums import ParticipantRole, TaskStatus, UserRole
from taskboard.models.user import User
from taskboard.models.task import Task, TaskParticipant
from taskboard.models.comment import Comment

__all__ = [
    "Comment",
    "ParticipantRole",
    "Task",
    "TaskParticipant",
    "TaskStatus",
    "User",
    "UserRole",
]
