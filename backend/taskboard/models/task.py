from sqlalchemy import Column, Integer, String, DateTime, ForeignKey, Text, Enum
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from taskboard.core.database import Base
from taskboard.models.enums import ParticipantRole, TaskStatus, enum_values

class Task(Base):
    __tablename__ = "tasks"

    id = Column(Integer, primary_key=True, index=True)
    title = Column(String(255), nullable=False)
    description = Column(Text, nullable=False, default="")
    status = Column(
        Enum(TaskStatus, native_enum=False, values_callable=enum_values, length=32),
        nullable=False,
        default=TaskStatus.PUBLISHED,
        index=True,
    )
    due_date = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), index=True)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    participants = relationship(
        "TaskParticipant",
        back_populates="task",
        lazy="selectin",
        order_by="TaskParticipant.user_id",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )
    comments = relationship(
        "Comment",
        back_populates="task",
        order_by="Comment.id",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )


class TaskParticipant(Base):
    """Edge of the task/user relation; one row per (task, user)."""

    __tablename__ = "task_participants"

    task_id = Column(Integer, ForeignKey("tasks.id", ondelete="CASCADE"), primary_key=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), primary_key=True, index=True)
    role = Column(
        Enum(ParticipantRole, native_enum=False, values_callable=enum_values, length=16),
        nullable=False,
    )
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    task = relationship("Task", back_populates="participants")
    user = relationship("User", back_populates="task_links", lazy="joined")
