from enum import Enum


class UserRole(str, Enum):
    ADMIN = "admin"
    USER = "user"


class TaskStatus(str, Enum):
    PUBLISHED = "published"
    IN_PROGRESS = "in-progress"
    DONE = "done"
    CANCELED = "canceled"


class ParticipantRole(str, Enum):
    CREATOR = "creator"
    EXECUTOR = "executor"
    OBSERVER = "observer"

    @classmethod
    def single_holder_roles(cls) -> frozenset:
        """Roles at most one participant of a task may hold."""
        return frozenset({cls.CREATOR, cls.EXECUTOR})


def enum_values(enum_cls):
    return [member.value for member in enum_cls]
